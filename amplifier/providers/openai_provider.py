"""OpenAI adapter.

gpt-5 models go through the Responses API; everything else uses Chat
Completions. Both request JSON-object output.
"""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from amplifier.errors import ProviderError
from amplifier.models import ProviderResult, Usage
from amplifier.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    parse_json_object,
    upstream_message,
)

_log = logging.getLogger(__name__)

JSON_REMINDER = "\n\nRespond with valid JSON."

_RESPONSES_API_PREFIXES = ("gpt-5",)
_COMPLETION_TOKENS_PREFIXES = ("gpt-4.1", "o1", "o3", "o4")
_NO_TEMPERATURE_PREFIXES = ("o1", "o3", "o4")


def uses_responses_api(model: str) -> bool:
    return model.startswith(_RESPONSES_API_PREFIXES)


class OpenAIAdapter:
    name = "openai"

    def __init__(self, api_key: str, client: AsyncOpenAI | None = None) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def call(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> ProviderResult:
        try:
            if uses_responses_api(model):
                _log.debug("openai route=responses model=%s", model)
                return await self._call_responses(model, system_prompt, messages)
            _log.debug("openai route=chat.completions model=%s", model)
            return await self._call_chat(model, system_prompt, messages, temperature, max_tokens)
        except openai.APIError as exc:
            status = getattr(exc, "status_code", None)
            raise ProviderError(upstream_message(exc), provider=self.name, status_code=status) from exc

    async def _call_chat(
        self,
        model: str,
        system_prompt: str,
        messages: list[dict],
        temperature: float,
        max_tokens: int,
    ) -> ProviderResult:
        params: dict = {
            "model": model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "response_format": {"type": "json_object"},
        }
        if not model.startswith(_NO_TEMPERATURE_PREFIXES):
            params["temperature"] = temperature
        if model.startswith(_COMPLETION_TOKENS_PREFIXES):
            params["max_completion_tokens"] = max_tokens
        else:
            params["max_tokens"] = max_tokens

        response = await self._client.chat.completions.create(**params)
        usage = Usage()
        if response.usage:
            details = getattr(response.usage, "prompt_tokens_details", None)
            usage = Usage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
                cached_tokens=getattr(details, "cached_tokens", None) or 0,
            )
        return parse_json_object(response.choices[0].message.content, usage)

    async def _call_responses(self, model: str, system_prompt: str, messages: list[dict]) -> ProviderResult:
        # The Responses API refuses json_object output unless "json" appears in the input.
        instructions = system_prompt
        if "json" not in instructions.lower():
            instructions += JSON_REMINDER

        items = [{"role": m["role"], "content": m["content"]} for m in messages]
        if items and "json" not in items[-1]["content"].lower():
            items[-1]["content"] += JSON_REMINDER

        if len(items) == 1 and items[0]["role"] == "user":
            input_value: str | list[dict] = items[0]["content"]
        else:
            input_value = items

        response = await self._client.responses.create(
            model=model,
            instructions=instructions,
            input=input_value,
            text={"format": {"type": "json_object"}},
        )
        usage = Usage()
        if response.usage:
            details = getattr(response.usage, "input_tokens_details", None)
            usage = Usage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
                cached_tokens=getattr(details, "cached_tokens", None) or 0,
            )
        return parse_json_object(response.output_text, usage)

    async def test_connection(self) -> bool:
        try:
            await self._client.models.list()
            return True
        except openai.APIError as exc:
            _log.info("openai connection test failed: %s", exc)
            return False
