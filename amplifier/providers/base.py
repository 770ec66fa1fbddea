from __future__ import annotations

import json
import re
from typing import Protocol, runtime_checkable

from amplifier.errors import InvalidResponseFormat
from amplifier.models import ProviderResult, Usage

DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_TOKENS = 1000

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@runtime_checkable
class ProviderAdapter(Protocol):
    """One LLM vendor behind a uniform structured-output call."""

    name: str

    async def call(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ProviderResult:
        ...

    async def test_connection(self) -> bool:
        ...


def parse_json_object(content: str | None, usage: Usage) -> ProviderResult:
    """Parse model output into a ProviderResult or raise InvalidResponseFormat."""
    text = (content or "").strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidResponseFormat(usage=usage) from exc
    if not isinstance(data, dict):
        raise InvalidResponseFormat("API response is not a JSON object", usage=usage)
    return ProviderResult(result=data, usage=usage)


def upstream_message(exc: Exception) -> str:
    """The vendor's own error text from an SDK error body, else the SDK message."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        inner = body.get("error")
        if isinstance(inner, dict):
            body = inner
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return getattr(exc, "message", None) or f"API error: {getattr(exc, 'status_code', None)}"
