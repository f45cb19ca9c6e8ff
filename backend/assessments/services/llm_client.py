from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from assessments.core.config import settings
from assessments.core.errors import GenerationError, GenerationTimeout

log = logging.getLogger(__name__)


def extract_json(text: str) -> dict[str, Any] | None:
    if not text:
        return None

    s = text.strip()
    if s.startswith("{") and s.endswith("}"):
        try:
            obj = json.loads(s)
            return obj if isinstance(obj, dict) else None
        except ValueError:
            pass

    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", s, re.IGNORECASE)
    if fenced:
        try:
            obj = json.loads(fenced.group(1))
            return obj if isinstance(obj, dict) else None
        except ValueError:
            pass

    m = re.search(r"\{[\s\S]*\}", s)
    if not m:
        return None

    try:
        obj = json.loads(m.group(0))
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


class ChatCompletionsClient:
    """Text generator backed by an OpenAI-compatible ``/chat/completions`` endpoint."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        timeout_read_seconds: float | None = None,
    ):
        self.base_url = ((base_url or "").strip() or str(settings.llm_base_url or "")).rstrip("/")
        self.model = (model or "").strip() or str(settings.llm_model or "").strip()
        self.api_key = (api_key or "").strip() or (settings.llm_api_key or "").strip()
        self.temperature = float(temperature) if temperature is not None else float(settings.llm_temperature)
        self.timeout_read_seconds = (
            float(timeout_read_seconds) if timeout_read_seconds is not None else float(settings.llm_timeout_read)
        )

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=float(settings.llm_timeout_connect),
            read=self.timeout_read_seconds,
            write=float(settings.llm_timeout_write),
            pool=3.0,
        )

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> str:
        if not settings.llm_enabled:
            raise GenerationError("generative provider is disabled")
        if not self.api_key:
            raise GenerationError("missing LLM_API_KEY")
        if not self.model:
            raise GenerationError("missing LLM_MODEL")

        payload: dict[str, Any] = {
            "model": self.model,
            "stream": False,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": float(temperature) if temperature is not None else self.temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = int(max_tokens)
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        url = self.base_url + "/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout()) as client:
                r = await client.post(url, json=payload, headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.TimeoutException as e:
            raise GenerationTimeout(f"provider timed out: {type(e).__name__}") from e
        except httpx.HTTPStatusError as e:
            status = int(e.response.status_code)
            body_snip = (e.response.text or "")[:600]
            log.warning("llm request failed status=%s body=%s", status, body_snip)
            raise GenerationError(f"provider returned HTTP {status}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(f"request_failed:{type(e).__name__}") from e

        content = None
        try:
            choices = (data or {}).get("choices") or []
            if choices:
                content = (choices[0] or {}).get("message", {}).get("content")
        except AttributeError:
            content = None

        if not isinstance(content, str):
            raise GenerationError("provider response has no message content")
        return content


async def llm_healthcheck(*, base_url: str | None = None) -> tuple[bool, str | None]:
    if not settings.llm_enabled:
        return False, "disabled"

    token = (settings.llm_api_key or "").strip()
    if not token:
        return False, "missing_token"

    base = ((str(base_url).strip() if base_url is not None else "") or str(settings.llm_base_url or "")).rstrip("/")
    if not base:
        return False, "missing_base_url"

    try:
        timeout = httpx.Timeout(connect=2.0, read=2.5, write=2.0, pool=2.0)
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.get(base + "/models", headers={"Authorization": f"Bearer {token}"})
            if r.status_code >= 400:
                return False, f"http_{r.status_code}"
        return True, None
    except httpx.HTTPError as e:
        return False, f"unreachable:{type(e).__name__}"
