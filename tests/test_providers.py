import json
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from amplifier import providers
from amplifier.errors import InvalidResponseFormat, PreconditionError, ProviderError
from amplifier.models import Usage
from amplifier.providers import AnthropicAdapter, OpenAIAdapter, make_adapter
from amplifier.providers.base import parse_json_object
from amplifier.providers.openai_provider import JSON_REMINDER, uses_responses_api
from conftest import good_result

pytestmark = pytest.mark.asyncio

PAYLOAD = json.dumps(good_result())
MESSAGES = [{"role": "user", "content": "CTX\n\nGenerate the 3 reply response variations."}]
_REQUEST = httpx.Request("POST", "https://api.example.test")
OPENAI_401 = {
    "error": {
        "message": "Incorrect API key provided: sk-bad.",
        "type": "invalid_request_error",
        "code": "invalid_api_key",
    }
}
ANTHROPIC_401 = {"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}


def _mock_http(status: int, payload: dict) -> httpx.AsyncClient:
    """Real SDK transport stack answering every request with one canned response."""
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(status, json=payload)))


def _chat_response(content=PAYLOAD, prompt_tokens=120, completion_tokens=80, cached=20):
    response = MagicMock()
    response.choices[0].message.content = content
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    response.usage.prompt_tokens_details.cached_tokens = cached
    return response


def _openai_client(chat=None, responses=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=chat or _chat_response())
    client.responses.create = AsyncMock(return_value=responses)
    client.models.list = AsyncMock(return_value=[])
    return client


def _anthropic_response(text=PAYLOAD):
    response = MagicMock()
    block = MagicMock()
    block.type = "text"
    block.text = text
    response.content = [block]
    response.usage.input_tokens = 90
    response.usage.output_tokens = 60
    response.usage.cache_read_input_tokens = None
    return response


# ── OpenAI ───────────────────────────────────────────────────────────────────

async def test_openai_chat_completions_json_mode():
    client = _openai_client()
    adapter = OpenAIAdapter("sk-test", client=client)
    result = await adapter.call("gpt-4o-mini", "SYSTEM", MESSAGES)

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"][0] == {"role": "system", "content": "SYSTEM"}
    assert kwargs["temperature"] == 0.8
    assert kwargs["max_tokens"] == 1000
    assert "max_completion_tokens" not in kwargs
    assert result.result["analysis"]["author_type"] == "ally"
    assert result.usage == Usage(input_tokens=120, output_tokens=80, cached_tokens=20)


async def test_openai_reasoning_models_use_completion_tokens_without_temperature():
    client = _openai_client()
    await OpenAIAdapter("sk-test", client=client).call("o3-mini", "SYSTEM", MESSAGES)
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["max_completion_tokens"] == 1000
    assert "temperature" not in kwargs

    await OpenAIAdapter("sk-test", client=client).call("gpt-4.1-mini", "SYSTEM", MESSAGES)
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["max_completion_tokens"] == 1000
    assert kwargs["temperature"] == 0.8


async def test_openai_gpt5_routes_to_responses_api():
    response = MagicMock()
    response.output_text = PAYLOAD
    response.usage.input_tokens = 300
    response.usage.output_tokens = 100
    response.usage.input_tokens_details.cached_tokens = 0
    client = _openai_client(responses=response)

    result = await OpenAIAdapter("sk-test", client=client).call("gpt-5-mini", "No format words here.", MESSAGES)

    client.chat.completions.create.assert_not_called()
    kwargs = client.responses.create.call_args.kwargs
    assert kwargs["text"] == {"format": {"type": "json_object"}}
    assert kwargs["instructions"].endswith(JSON_REMINDER)
    assert isinstance(kwargs["input"], str)
    assert kwargs["input"].endswith(JSON_REMINDER)
    assert result.usage.input_tokens == 300
    # The caller's messages are not mutated.
    assert not MESSAGES[0]["content"].endswith(JSON_REMINDER)


async def test_openai_responses_api_multi_turn_input_is_a_list():
    response = MagicMock()
    response.output_text = PAYLOAD
    response.usage.input_tokens = 1
    response.usage.output_tokens = 1
    response.usage.input_tokens_details.cached_tokens = 0
    client = _openai_client(responses=response)
    history = [*MESSAGES, {"role": "assistant", "content": "drafts"}, {"role": "user", "content": "Return json please"}]

    await OpenAIAdapter("sk-test", client=client).call("gpt-5.2", "Answer in JSON.", history)

    kwargs = client.responses.create.call_args.kwargs
    assert kwargs["instructions"] == "Answer in JSON."
    assert isinstance(kwargs["input"], list)
    assert kwargs["input"][-1]["content"] == "Return json please"


async def test_uses_responses_api():
    assert uses_responses_api("gpt-5-mini")
    assert not uses_responses_api("gpt-4o-mini")


async def test_openai_unparseable_output_raises_with_usage():
    client = _openai_client(chat=_chat_response(content="Sure! Here you go"))
    with pytest.raises(InvalidResponseFormat) as exc_info:
        await OpenAIAdapter("sk-test", client=client).call("gpt-4o-mini", "S", MESSAGES)
    assert exc_info.value.usage.input_tokens == 120


async def test_openai_http_error_carries_upstream_message():
    client = openai.AsyncOpenAI(api_key="sk-bad", max_retries=0, http_client=_mock_http(401, OPENAI_401))
    with pytest.raises(ProviderError) as exc_info:
        await OpenAIAdapter("sk-bad", client=client).call("gpt-4o-mini", "S", MESSAGES)
    assert exc_info.value.message == "Incorrect API key provided: sk-bad."
    assert exc_info.value.provider == "openai"
    assert exc_info.value.status_code == 401


async def test_openai_error_without_body_falls_back_to_sdk_message():
    client = _openai_client()
    client.chat.completions.create.side_effect = openai.APIConnectionError(request=_REQUEST)
    with pytest.raises(ProviderError) as exc_info:
        await OpenAIAdapter("sk-test", client=client).call("gpt-4o-mini", "S", MESSAGES)
    assert exc_info.value.message == "Connection error."
    assert exc_info.value.status_code is None


async def test_openai_connection_check():
    client = _openai_client()
    assert await OpenAIAdapter("sk-test", client=client).test_connection()
    client.models.list.side_effect = openai.APIConnectionError(request=_REQUEST)
    assert not await OpenAIAdapter("sk-test", client=client).test_connection()


async def test_openai_client_built_from_key():
    mock_client = _openai_client()
    with patch("amplifier.providers.openai_provider.AsyncOpenAI", return_value=mock_client) as ctor:
        adapter = make_adapter("openai", "sk-live")
        await adapter.call("gpt-4o-mini", "S", MESSAGES)
    ctor.assert_called_once_with(api_key="sk-live")


# ── Anthropic ────────────────────────────────────────────────────────────────

async def test_anthropic_messages_call():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_anthropic_response())
    with_system = [{"role": "system", "content": "ignored"}, *MESSAGES]

    result = await AnthropicAdapter("sk-ant", client=client).call("claude-sonnet-4-20250514", "SYSTEM", with_system)

    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["system"] == "SYSTEM"
    assert kwargs["max_tokens"] == 1000
    assert kwargs["temperature"] == 0.8
    assert all(m["role"] != "system" for m in kwargs["messages"])
    assert result.usage == Usage(input_tokens=90, output_tokens=60, cached_tokens=0)
    assert len(result.result["responses"]) == 3


async def test_anthropic_fenced_json_is_accepted():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_anthropic_response(f"```json\n{PAYLOAD}\n```"))
    result = await AnthropicAdapter("sk-ant", client=client).call("claude-3-5-haiku-20241022", "S", MESSAGES)
    assert "responses" in result.result


async def test_anthropic_http_error_carries_upstream_message():
    client = anthropic.AsyncAnthropic(api_key="sk-bad", max_retries=0, http_client=_mock_http(401, ANTHROPIC_401))
    with pytest.raises(ProviderError) as exc_info:
        await AnthropicAdapter("sk-bad", client=client).call("claude-3-5-haiku-20241022", "S", MESSAGES)
    assert exc_info.value.message == "invalid x-api-key"
    assert exc_info.value.status_code == 401


async def test_anthropic_error_becomes_provider_error():
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=anthropic.APIConnectionError(request=_REQUEST))
    with pytest.raises(ProviderError) as exc_info:
        await AnthropicAdapter("sk-ant", client=client).call("claude-3-5-haiku-20241022", "S", MESSAGES)
    assert exc_info.value.provider == "anthropic"


async def test_anthropic_connection_check_uses_cheap_ping():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=_anthropic_response())
    assert await AnthropicAdapter("sk-ant", client=client).test_connection()
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["max_tokens"] == 10
    assert kwargs["model"] == "claude-3-5-haiku-20241022"

    client.messages.create.side_effect = anthropic.APIConnectionError(request=_REQUEST)
    assert not await AnthropicAdapter("sk-ant", client=client).test_connection()


# ── Registry ─────────────────────────────────────────────────────────────────

async def test_unknown_provider_is_a_precondition_error():
    with pytest.raises(PreconditionError):
        make_adapter("mistral", "key")


async def test_module_level_connection_check_rejects_unknown_or_empty():
    assert not await providers.test_connection("mistral", "key")
    assert not await providers.test_connection("openai", "")


async def test_parse_json_object_rejects_arrays():
    with pytest.raises(InvalidResponseFormat):
        parse_json_object("[1, 2]", Usage())
