from fastapi.testclient import TestClient

from assessments.main import create_app

from conftest import feedback_json, questions_json


def _start_quiz(client, headers) -> dict:
    r = client.post("/sessions", json={"kind": "quiz"}, headers=headers)
    assert r.status_code == 200
    return r.json()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_health_live_and_ready(client):
    assert client.get("/health/live").json().get("status") == "live"
    r = client.get("/health/ready")
    assert r.status_code == 200
    assert r.json().get("status") == "ready"


def test_requests_carry_a_request_id(client):
    r = client.get("/health", headers={"X-Request-ID": "rid-123"})
    assert r.headers["X-Request-ID"] == "rid-123"
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_sessions_require_authentication(client):
    r = client.post("/sessions", json={"kind": "quiz"})
    assert r.status_code == 401
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "unauthorized"
    assert body["request_id"]


def test_quiz_flow_over_http(client, auth_headers):
    state = _start_quiz(client, auth_headers)
    sid = state["id"]
    assert state["question_count"] == 5
    assert state["remaining_seconds"] == 1800
    assert all("correct_answer" not in q for q in state["questions"])

    for qid, value in {"1": "var myVar = 5;", "2": "False", "3": "let is block scoped", "4": "pop()", "5": "True"}.items():
        r = client.put(f"/sessions/{sid}/answers/{qid}", json={"value": value}, headers=auth_headers)
        assert r.status_code == 200
    assert r.json()["answered_count"] == 5

    r = client.post(f"/sessions/{sid}/navigate", json={"action": "goto", "index": 3}, headers=auth_headers)
    assert r.json()["current_index"] == 3

    r = client.post(f"/sessions/{sid}/flags/3", headers=auth_headers)
    assert r.json() == {"question_id": "4", "flagged": True, "flagged_ids": ["4"]}

    r = client.post(f"/sessions/{sid}/submit", headers=auth_headers)
    assert r.status_code == 200
    report = r.json()
    assert report["overall_score"] == 75.0
    assert report["passed"] is True
    assert report["correct_count"] == 3
    assert report["gradable_count"] == 4
    assert report["flagged"] == ["4"]

    r = client.get(f"/reports/{sid}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["overall_score"] == 75.0


def test_second_submit_is_a_session_state_error(client, auth_headers):
    sid = _start_quiz(client, auth_headers)["id"]
    assert client.post(f"/sessions/{sid}/submit", headers=auth_headers).status_code == 200

    r = client.post(f"/sessions/{sid}/submit", headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "session_state_error"
    assert r.json()["error_message"] == "session already completed"

    r = client.put(f"/sessions/{sid}/answers/1", json={"value": "x"}, headers=auth_headers)
    assert r.status_code == 409


def test_quiz_submit_endpoint(client, auth_headers):
    sid = _start_quiz(client, auth_headers)["id"]

    r = client.post(
        f"/sessions/{sid}/quiz-submit",
        json={"answers": {"1": "var myVar = 5;", "2": "True"}, "flagged": ["2"], "time_spent_seconds": 42},
        headers=auth_headers,
    )

    assert r.status_code == 200
    report = r.json()
    assert report["correct_count"] == 1
    assert report["gradable_count"] == 4
    assert report["overall_score"] == 25.0
    assert report["time_spent_seconds"] == 42


def test_quiz_submit_rejects_unknown_question(client, auth_headers):
    sid = _start_quiz(client, auth_headers)["id"]

    r = client.post(f"/sessions/{sid}/quiz-submit", json={"answers": {"nope": "x"}}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"


def test_sessions_are_private(client, auth_headers, other_headers):
    sid = _start_quiz(client, auth_headers)["id"]

    assert client.get(f"/sessions/{sid}", headers=other_headers).status_code == 404
    assert client.get(f"/sessions/{sid}", headers=auth_headers).status_code == 200


def test_abandon_session(client, auth_headers):
    sid = _start_quiz(client, auth_headers)["id"]

    r = client.delete(f"/sessions/{sid}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["abandoned"] is True

    r = client.get(f"/sessions/{sid}", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "session_not_found"


def test_interview_session_over_http(client, auth_headers, generator):
    generator.queue(questions_json(2), feedback_json(overall=90), feedback_json(overall=60))

    r = client.post(
        "/sessions",
        json={"kind": "interview", "role": "Product Manager", "level": "senior", "count": 2},
        headers=auth_headers,
    )
    assert r.status_code == 200
    state = r.json()
    assert state["time_limit_seconds"] == 2700
    sid = state["id"]

    for q in state["questions"]:
        client.put(f"/sessions/{sid}/answers/{q['id']}", json={"value": "My answer"}, headers=auth_headers)

    r = client.post(f"/sessions/{sid}/submit", headers=auth_headers)
    assert r.status_code == 200
    report = r.json()
    assert report["kind"] == "interview"
    assert report["overall_score"] == 75.0
    assert report["strengths"] == ["Clear communication"]


def test_interview_session_needs_role_and_level(client, auth_headers):
    r = client.post("/sessions", json={"kind": "interview"}, headers=auth_headers)
    assert r.status_code == 400


def test_ai_interview_unknown_action(client, auth_headers):
    r = client.post("/ai-interview", json={"action": "summon"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error_message"] == "invalid action"


def test_ai_interview_analyze_answer(client, auth_headers, generator):
    generator.queue(feedback_json(overall=66))

    r = client.post(
        "/ai-interview",
        json={
            "action": "analyze_answer",
            "answer": "I would profile first.",
            "question": {"id": "t1", "text": "How do you debug latency?", "type": "technical"},
            "role": "Engineer",
            "level": "mid",
        },
        headers=auth_headers,
    )

    assert r.status_code == 200
    fb = r.json()["feedback"]
    assert fb["question_id"] == "t1"
    assert fb["scores"]["overall"] == 66


def test_ai_interview_generate_questions(client, auth_headers, generator):
    generator.queue(questions_json(3, kind="situational"))

    r = client.post(
        "/ai-interview",
        json={"action": "generate_questions", "role": "Designer", "level": "junior", "type": "situational", "count": 3},
        headers=auth_headers,
    )

    assert r.status_code == 200
    assert [q["kind"] for q in r.json()["questions"]] == ["situational"] * 3


def test_ai_interview_generate_feedback(client, auth_headers, generator):
    generator.queue("Solid answers with room to add metrics.")

    r = client.post(
        "/ai-interview",
        json={
            "action": "generate_feedback",
            "session": {
                "config": {"role": "PM", "level": "mid", "type": "behavioral"},
                "questions": [{"id": "b1", "text": "Tell me about a conflict.", "type": "behavioral"}],
            },
            "answers": [{"questionId": "b1", "answer": "We disagreed on scope.", "feedback": {"overallScore": 72}}],
        },
        headers=auth_headers,
    )

    assert r.status_code == 200
    assert r.json() == {"feedback": "Solid answers with room to add metrics."}
    assert "Score: 72%" in generator.calls[0]["prompt"]


def test_ai_interview_contract_violation_is_a_server_error(client, auth_headers, generator):
    generator.queue(feedback_json(overall=500), feedback_json(overall=500))

    r = client.post(
        "/ai-interview",
        json={
            "action": "analyze_answer",
            "answer": "x",
            "question": {"id": "b1", "text": "Why this role?", "type": "behavioral"},
            "role": "PM",
            "level": "mid",
        },
        headers=auth_headers,
    )

    assert r.status_code == 502
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "generation_contract_violation"
    assert "feedback" not in body


def test_ai_interview_invalid_payload(client, auth_headers):
    r = client.post(
        "/ai-interview",
        json={"action": "generate_questions", "role": "", "level": "mid"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["error_code"] == "validation_error"


def test_shutdown_abandons_open_sessions(gateway, registry, auth_headers):
    app = create_app()
    app.state.gateway = gateway
    app.state.registry = registry

    with TestClient(app) as client:
        sid = _start_quiz(client, auth_headers)["id"]
        assert registry.get(sid).status.value == "in_progress"

    assert registry._sessions == {}


def test_completed_session_reports_already_completed(client, auth_headers):
    sid = _start_quiz(client, auth_headers)["id"]
    client.post(f"/sessions/{sid}/submit", headers=auth_headers)

    r = client.get(f"/sessions/{sid}", headers=auth_headers)
    assert r.status_code == 409
    assert r.json()["error_message"] == "session already completed"
