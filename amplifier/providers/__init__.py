"""Provider registry: pick an adapter by provider tag."""

from amplifier.errors import PreconditionError
from amplifier.models import ProviderResult
from amplifier.providers.anthropic_provider import AnthropicAdapter
from amplifier.providers.base import ProviderAdapter
from amplifier.providers.openai_provider import OpenAIAdapter

ADAPTERS: dict[str, type] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
}


def make_adapter(provider: str, api_key: str) -> ProviderAdapter:
    adapter_cls = ADAPTERS.get(provider)
    if adapter_cls is None:
        raise PreconditionError(f"Unknown provider: {provider}")
    return adapter_cls(api_key)


async def call(provider: str, api_key: str, model: str, system_prompt: str, messages: list[dict]) -> ProviderResult:
    return await make_adapter(provider, api_key).call(model, system_prompt, messages)


async def test_connection(provider: str, api_key: str) -> bool:
    if provider not in ADAPTERS or not api_key:
        return False
    return await make_adapter(provider, api_key).test_connection()


__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "call",
    "make_adapter",
    "test_connection",
]
