import asyncio

import pytest

from amplifier.config.catalog import load_catalog
from amplifier.config.settings import Settings
from amplifier.errors import InvalidResponseFormat
from amplifier.generation.context_store import ContextStore
from amplifier.generation.orchestrator import GenerationOrchestrator
from amplifier.models import Author, PostData, ProviderResult, Usage

HASHTAG = "#IranRevolution2026"


def draft(text: str, tone: str = "direct") -> dict:
    return {"text": text, "tone": tone}


def good_result(prefix: str = "") -> dict:
    return {
        "analysis": {
            "post_sentiment": "supportive",
            "author_type": "ally",
            "key_topics": ["sanctions"],
            "recommended_approach": "amplify",
        },
        "responses": [
            draft(f"{prefix}Our people are still on the streets. {HASHTAG}", "direct"),
            draft(f"{prefix}Sanctions on the officials who ordered this are overdue. {HASHTAG}", "policy"),
            draft(f"{prefix}My cousin has been detained for 40 days with no charge. {HASHTAG}", "personal"),
        ],
    }


class StaticSettings:
    def __init__(self, **overrides):
        values = {"api_key": "sk-test", "provider": "openai", "model": "gpt-4o-mini"}
        values.update(overrides)
        self.settings = Settings(**values)

    async def get_settings(self) -> Settings:
        return self.settings


class ScriptedAdapter:
    """Returns queued results in order; an exception instance in the queue is raised."""

    name = "scripted"

    def __init__(self, *results, usage: Usage | None = None):
        self.results = list(results)
        self.usage = usage or Usage(input_tokens=100, output_tokens=50)
        self.calls: list[dict] = []

    async def call(self, model, system_prompt, messages, *, temperature=0.8, max_tokens=1000):
        self.calls.append({"model": model, "system_prompt": system_prompt, "messages": messages})
        await asyncio.sleep(0)
        item = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(item, Exception):
            raise item
        return ProviderResult(result=item, usage=self.usage)

    async def test_connection(self) -> bool:
        return True


class RecordingUsage:
    def __init__(self):
        self.records = []

    async def record_usage(self, input_tokens, output_tokens, model):
        self.records.append((input_tokens, output_tokens, model))


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def post():
    return PostData(
        post_id="1880000000000000001",
        url="https://x.com/someone/status/1880000000000000001",
        text="Day 40 of the internet blackout.",
        author=Author(handle="someone", display_name="Some One", is_verified=True,
                      bio="Human rights activist"),
        has_media=False,
    )


@pytest.fixture
def make_orchestrator(catalog):
    def _make(adapter, settings=None, **kwargs):
        store = kwargs.pop("store", None)
        return GenerationOrchestrator(
            settings or StaticSettings(),
            catalog,
            store if store is not None else ContextStore(),
            adapter_factory=lambda provider, api_key: adapter,
            **kwargs,
        )
    return _make


def unparseable(usage: Usage | None = None) -> InvalidResponseFormat:
    return InvalidResponseFormat(usage=usage or Usage(input_tokens=10, output_tokens=5))
