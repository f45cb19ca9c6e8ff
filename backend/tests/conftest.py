import sys
import json
import time
import inspect
import random
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

backend_dir = Path(__file__).resolve().parents[1]
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from assessments.core.security import issue_token
from assessments.main import create_app
from assessments.models.question import Question, QuestionKind
from assessments.services.generation import StructuredGenerationGateway
from assessments.services.sessions import SessionRegistry


class _MemoryRedis:
    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}

    def ping(self):
        return True

    def clear(self):
        self._data.clear()

    def _now(self) -> float:
        return time.time()

    def _get_entry(self, key: str):
        v = self._data.get(key)
        if not v:
            return None
        value, exp = v
        if exp is not None and exp <= self._now():
            self._data.pop(key, None)
            return None
        return value, exp

    def get(self, key: str):
        entry = self._get_entry(key)
        return entry[0] if entry else None

    def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and self._get_entry(key) is not None:
            return None
        exp = (self._now() + int(ex)) if ex else None
        self._data[key] = (value, exp)
        return True

    def delete(self, key: str):
        self._data.pop(key, None)
        return 1

    def incr(self, key: str):
        cur = self.get(key)
        n = int(cur or 0) + 1
        _, exp = self._data.get(key, ("", None))
        self._data[key] = (str(n), exp)
        return n

    def expire(self, key: str, seconds: int):
        entry = self._get_entry(key)
        if not entry:
            return False
        value, _ = entry
        self._data[key] = (value, self._now() + int(seconds))
        return True

    def ttl(self, key: str):
        entry = self._get_entry(key)
        if not entry:
            return -2
        _, exp = entry
        if exp is None:
            return -1
        return max(0, int(exp - self._now()))


# Stub Redis at import time (rate limiting, report store, readiness).
_mem_redis = _MemoryRedis()
import assessments.core.redis_client as redis_client_module

redis_client_module.get_redis = lambda: _mem_redis

import assessments.core.rate_limit as rate_limit_module
rate_limit_module.get_redis = lambda: _mem_redis

import assessments.services.reports as reports_module
reports_module.get_redis = lambda: _mem_redis

import assessments.routers.health as health_router_module
health_router_module.get_redis = lambda: _mem_redis


class FakeGenerator:
    """Scripted text generator.

    Returns queued responses in order, or delegates to ``handler`` when one is set.
    Queued exceptions are raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.handler = None
        self.calls: list[dict] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def complete(self, *, system, prompt, temperature=None, max_tokens=None, json_mode=False):
        self.calls.append({"system": system, "prompt": prompt, "max_tokens": max_tokens, "json_mode": json_mode})
        if self.handler is not None:
            out = self.handler(system=system, prompt=prompt)
            if inspect.isawaitable(out):
                out = await out
            return out
        if not self.responses:
            raise AssertionError("unexpected generation call")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def feedback_json(overall: float = 80, **overrides) -> str:
    payload = {
        "clarity": 80,
        "confidence": 75,
        "structure": 70,
        "relevance": 85,
        "overallScore": overall,
        "suggestions": ["Use the STAR method"],
        "strengths": ["Clear communication"],
        "improvements": ["Add metrics"],
    }
    payload.update(overrides)
    return json.dumps(payload)


def questions_json(n: int, *, kind: str = "behavioral", prefix: str = "g") -> str:
    return json.dumps(
        {
            "questions": [
                {
                    "id": f"{prefix}{i}",
                    "text": f"Generated question {i}?",
                    "type": kind,
                    "difficulty": "intermediate",
                    "expectedDuration": 120,
                    "followUps": [],
                    "evaluationCriteria": ["Specific example"],
                }
                for i in range(1, n + 1)
            ]
        }
    )


def exact_question(qid: str, correct: str, *, kind: QuestionKind = QuestionKind.multiple_choice) -> Question:
    options = ("True", "False") if kind == QuestionKind.true_false else ("a", "b", "c", "d")
    return Question(id=qid, text=f"Question {qid}?", kind=kind, options=options, correct_answer=correct)


def interview_question(qid: str, *, kind: QuestionKind = QuestionKind.behavioral) -> Question:
    return Question(
        id=qid,
        text=f"Interview question {qid}?",
        kind=kind,
        expected_duration_seconds=120,
        evaluation_criteria=("Specific example",),
    )


@pytest.fixture(autouse=True)
def _reset_redis():
    _mem_redis.clear()
    yield
    _mem_redis.clear()


@pytest.fixture()
def mem_redis():
    return _mem_redis


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def gateway(generator):
    return StructuredGenerationGateway(generator, timeout_seconds=1.0, rng=random.Random(7))


@pytest.fixture()
def registry(gateway):
    return SessionRegistry(gateway, passing_score=70.0, clock_enabled=False, highlights_limit=5)


@pytest.fixture()
def client(gateway, registry):
    app = create_app()
    app.state.gateway = gateway
    app.state.registry = registry
    return TestClient(app)


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {issue_token('learner-1')}"}


@pytest.fixture()
def other_headers():
    return {"Authorization": f"Bearer {issue_token('learner-2')}"}
