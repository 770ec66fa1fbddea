"""Argument / call-to-action catalog, prompts, models and pricing.

The bundled ``defaults.yaml`` ships with the package. ``AMPLIFIER_CONFIG_PATH``
may point at an override file; an override that fails validation is ignored
and the bundled catalog is used instead.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

_log = logging.getLogger(__name__)

BUNDLED_CONFIG_PATH = Path(__file__).with_name("defaults.yaml")
DEFAULT_PRICING = {"input": 0.25, "output": 2.0}


# ── Schema ───────────────────────────────────────────────────────────────────

class Argument(BaseModel):
    id: int
    title: str
    description: str
    type: Literal["include", "exclude"]


class CallToAction(BaseModel):
    id: int
    title: str
    description: str
    default: bool = True


class ModelOption(BaseModel):
    id: str
    name: str
    default: bool = False


class Pricing(BaseModel):
    input: float
    output: float


class Prompts(BaseModel):
    fixed: str
    default: str


class CatalogConfig(BaseModel):
    version: str
    updated_at: str | None = None
    arguments: list[Argument] = []
    call_to_actions: list[CallToAction] = []
    models: dict[Literal["openai", "anthropic"], list[ModelOption]]
    pricing: dict[str, Pricing]
    prompts: Prompts
    refusal_messages: dict[str, str] = Field(default_factory=dict)
    shortcuts: dict[str, str]


# ── Catalog ──────────────────────────────────────────────────────────────────

class Catalog:
    """Read-only accessors over a validated CatalogConfig."""

    def __init__(self, config: CatalogConfig, source: str = "bundled") -> None:
        self.config = config
        self.source = source

    @property
    def version(self) -> str:
        return self.config.version

    def arguments(self) -> list[Argument]:
        return list(self.config.arguments)

    def include_arguments(self) -> list[Argument]:
        return [a for a in self.config.arguments if a.type == "include"]

    def exclusions(self) -> list[Argument]:
        return [a for a in self.config.arguments if a.type == "exclude"]

    def call_to_actions(self) -> list[CallToAction]:
        return list(self.config.call_to_actions)

    def default_argument_ids(self) -> list[int]:
        return [a.id for a in self.include_arguments()]

    def default_cta_ids(self) -> list[int]:
        return [c.id for c in self.config.call_to_actions if c.default]

    def refusal_message(self, kind: str) -> str:
        messages = self.config.refusal_messages
        return messages.get(kind) or messages.get("general", "")

    def fixed_prompt(self) -> str:
        return self.config.prompts.fixed

    def default_user_prompt(self) -> str:
        return self.config.prompts.default

    def models(self, provider: str) -> list[ModelOption]:
        return list(self.config.models.get(provider, []))

    def default_model(self, provider: str) -> str | None:
        options = self.models(provider)
        for option in options:
            if option.default:
                return option.id
        return options[0].id if options else None

    def pricing(self, model: str) -> Pricing:
        return self.config.pricing.get(model) or Pricing(**DEFAULT_PRICING)

    def shortcuts(self) -> dict[str, str]:
        return dict(self.config.shortcuts)


# ── Loading ──────────────────────────────────────────────────────────────────

def _read_config(path: Path) -> CatalogConfig:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return CatalogConfig.model_validate(data)


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load the catalog from ``path`` (or ``AMPLIFIER_CONFIG_PATH``).

    Falls back to the bundled defaults when the override is missing,
    unreadable or fails schema validation.
    """
    override = path or os.getenv("AMPLIFIER_CONFIG_PATH")
    if override:
        try:
            config = _read_config(Path(override))
            _log.info("Loaded catalog v%s from %s", config.version, override)
            return Catalog(config, source=str(override))
        except (OSError, yaml.YAMLError, ValidationError) as exc:
            _log.warning("Invalid catalog override %s, using bundled defaults: %s", override, exc)
    return Catalog(_read_config(BUNDLED_CONFIG_PATH))


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    """Process-wide catalog, loaded once."""
    return load_catalog()
