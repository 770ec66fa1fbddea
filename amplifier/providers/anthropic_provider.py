from __future__ import annotations

import logging

import anthropic
from anthropic import AsyncAnthropic

from amplifier.errors import ProviderError
from amplifier.models import ProviderResult, Usage
from amplifier.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    parse_json_object,
    upstream_message,
)

_log = logging.getLogger(__name__)

PING_MODEL = "claude-3-5-haiku-20241022"


class AnthropicAdapter:
    """Messages API adapter. JSON output is requested through the prompt."""

    name = "anthropic"

    def __init__(self, api_key: str, client: AsyncAnthropic | None = None) -> None:
        self._client = client or AsyncAnthropic(api_key=api_key)

    async def call(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ProviderResult:
        _log.debug("anthropic route=messages model=%s", model)
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[
                    {"role": m["role"], "content": m["content"]}
                    for m in messages
                    if m["role"] != "system"
                ],
            )
        except anthropic.APIError as exc:
            status = getattr(exc, "status_code", None)
            raise ProviderError(upstream_message(exc), provider=self.name, status_code=status) from exc

        usage = Usage()
        if response.usage:
            usage = Usage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
                cached_tokens=getattr(response.usage, "cache_read_input_tokens", None) or 0,
            )
        text = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
        return parse_json_object(text, usage)

    async def test_connection(self) -> bool:
        try:
            await self._client.messages.create(
                model=PING_MODEL,
                max_tokens=10,
                messages=[{"role": "user", "content": "Hi"}],
            )
            return True
        except anthropic.APIError as exc:
            _log.info("anthropic connection test failed: %s", exc)
            return False
