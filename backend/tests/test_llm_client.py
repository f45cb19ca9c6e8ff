import httpx
import pytest

from assessments.core.config import settings
from assessments.core.errors import GenerationError, GenerationTimeout
from assessments.services.llm_client import ChatCompletionsClient


class _Resp:
    def __init__(self, payload: dict):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


class _ClientOk:
    last_payload = None

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url, json, headers):
        _ClientOk.last_payload = {"url": url, "json": json, "headers": headers}
        return _Resp({"choices": [{"message": {"content": '{"ok": true}'}}]})


class _ClientTimeout(_ClientOk):
    async def post(self, url, json, headers):
        raise httpx.ReadTimeout("timed out")


class _ClientNoContent(_ClientOk):
    async def post(self, url, json, headers):
        return _Resp({"choices": []})


@pytest.fixture()
def llm_settings(monkeypatch):
    monkeypatch.setattr(settings, "llm_enabled", True)
    monkeypatch.setattr(settings, "llm_base_url", "http://llm/v1")
    monkeypatch.setattr(settings, "llm_model", "dummy")
    monkeypatch.setattr(settings, "llm_api_key", "sk-test")


@pytest.mark.asyncio
async def test_complete_ok(llm_settings, monkeypatch):
    import assessments.services.llm_client as llm_mod

    monkeypatch.setattr(llm_mod.httpx, "AsyncClient", _ClientOk)

    out = await ChatCompletionsClient().complete(system="s", prompt="p", max_tokens=50, json_mode=True)

    assert out == '{"ok": true}'
    sent = _ClientOk.last_payload
    assert sent["url"] == "http://llm/v1/chat/completions"
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["json"]["response_format"] == {"type": "json_object"}
    assert sent["json"]["max_tokens"] == 50


@pytest.mark.asyncio
async def test_complete_timeout(llm_settings, monkeypatch):
    import assessments.services.llm_client as llm_mod

    monkeypatch.setattr(llm_mod.httpx, "AsyncClient", _ClientTimeout)

    with pytest.raises(GenerationTimeout):
        await ChatCompletionsClient().complete(system="s", prompt="p")


@pytest.mark.asyncio
async def test_complete_without_content(llm_settings, monkeypatch):
    import assessments.services.llm_client as llm_mod

    monkeypatch.setattr(llm_mod.httpx, "AsyncClient", _ClientNoContent)

    with pytest.raises(GenerationError):
        await ChatCompletionsClient().complete(system="s", prompt="p")


@pytest.mark.asyncio
async def test_complete_disabled(llm_settings, monkeypatch):
    monkeypatch.setattr(settings, "llm_enabled", False)

    with pytest.raises(GenerationError):
        await ChatCompletionsClient().complete(system="s", prompt="p")


@pytest.mark.asyncio
async def test_complete_without_key(llm_settings, monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", None)

    with pytest.raises(GenerationError):
        await ChatCompletionsClient().complete(system="s", prompt="p")
