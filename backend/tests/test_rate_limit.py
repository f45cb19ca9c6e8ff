import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from assessments.core.rate_limit import rate_limit
import assessments.core.rate_limit as rate_limit_module


def _limited_app() -> FastAPI:
    app = FastAPI()

    @app.post("/attempts")
    async def attempt(quota=rate_limit(key_prefix="attempts", limit=2, window_seconds=60)):
        return {"used": quota.used}

    return app


def test_quota_is_per_learner_and_returns_429(auth_headers, other_headers, mem_redis):
    client = TestClient(_limited_app())

    assert client.post("/attempts", headers=auth_headers).json() == {"used": 1}
    assert client.post("/attempts", headers=auth_headers).json() == {"used": 2}

    r = client.post("/attempts", headers=auth_headers)
    assert r.status_code == 429
    assert 0 < int(r.headers["Retry-After"]) <= 60

    assert client.post("/attempts", headers=other_headers).status_code == 200
    assert mem_redis.get("rl:attempts:learner-1") == "3"


def test_quota_needs_an_identity():
    client = TestClient(_limited_app())

    assert client.post("/attempts").status_code == 401


def test_redis_outage_lets_requests_through(auth_headers, monkeypatch):
    class _Down:
        def incr(self, key):
            raise redis.ConnectionError("down")

    monkeypatch.setattr(rate_limit_module, "get_redis", lambda: _Down())
    client = TestClient(_limited_app())

    for _ in range(3):
        r = client.post("/attempts", headers=auth_headers)
        assert r.status_code == 200
        assert r.json() == {"used": 0}


def test_session_start_is_rate_limited(client, auth_headers):
    for _ in range(30):
        assert client.post("/sessions", json={"kind": "quiz"}, headers=auth_headers).status_code == 200

    r = client.post("/sessions", json={"kind": "quiz"}, headers=auth_headers)
    assert r.status_code == 429
    assert r.json()["error_code"] == "http_error"
    assert "Retry-After" in r.headers
