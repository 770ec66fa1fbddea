"""User settings: provider credentials, selections and personalization.

Read from the environment (``.env`` is loaded by the CLI and the server):

  AMPLIFIER_PROVIDER        openai (default) | anthropic
  AMPLIFIER_MODEL           defaults to the catalog's default model for the provider
  AMPLIFIER_API_KEY         falls back to OPENAI_API_KEY / ANTHROPIC_API_KEY
  AMPLIFIER_STYLE_PROMPT    replaces the catalog's default style prompt
  AMPLIFIER_ARGUMENTS       comma-separated argument ids (default: all include arguments)
  AMPLIFIER_CTAS            comma-separated call-to-action ids (default: catalog defaults)
  AMPLIFIER_VOICE / _BACKGROUND / _APPROACH / _LENGTH
  AMPLIFIER_USER_SEED       fingerprint seed (generated once per process if unset)
"""

from __future__ import annotations

import logging
import os
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from amplifier.config.catalog import Catalog, get_catalog
from amplifier.prompts.personalization import (
    Personalization,
    UserPreferences,
    generate_user_seed,
)

_log = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"
DEFAULT_MODEL = "gpt-4o-mini"

_PROVIDER_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


class Settings(BaseModel):
    api_key: str | None = None
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    custom_user_prompt: str | None = None
    selected_argument_ids: list[int] = []
    selected_cta_ids: list[int] = []
    personalization: Personalization | None = None


@runtime_checkable
class SettingsProvider(Protocol):
    async def get_settings(self) -> Settings:
        ...


def _parse_ids(raw: str | None) -> list[int] | None:
    if raw is None:
        return None
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            _log.warning("Ignoring non-numeric id %r", part)
    return ids


class EnvSettingsProvider:
    """Settings read fresh from ``os.environ`` on every call."""

    def __init__(self, catalog: Catalog | None = None) -> None:
        self._catalog = catalog or get_catalog()
        self._seed = os.getenv("AMPLIFIER_USER_SEED") or generate_user_seed()

    async def get_settings(self) -> Settings:
        provider = os.getenv("AMPLIFIER_PROVIDER", DEFAULT_PROVIDER).lower()
        api_key = os.getenv("AMPLIFIER_API_KEY") or os.getenv(_PROVIDER_KEY_VARS.get(provider, ""), "")
        model = os.getenv("AMPLIFIER_MODEL") or self._catalog.default_model(provider) or DEFAULT_MODEL

        argument_ids = _parse_ids(os.getenv("AMPLIFIER_ARGUMENTS"))
        if argument_ids is None:
            argument_ids = self._catalog.default_argument_ids()
        cta_ids = _parse_ids(os.getenv("AMPLIFIER_CTAS"))
        if cta_ids is None:
            cta_ids = self._catalog.default_cta_ids()

        preferences = UserPreferences(
            voice_style=os.getenv("AMPLIFIER_VOICE", "mixed"),
            background=os.getenv("AMPLIFIER_BACKGROUND", "other"),
            approach=os.getenv("AMPLIFIER_APPROACH", "mixed"),
            length=os.getenv("AMPLIFIER_LENGTH", "medium"),
        )

        return Settings(
            api_key=api_key or None,
            provider=provider,
            model=model,
            custom_user_prompt=os.getenv("AMPLIFIER_STYLE_PROMPT"),
            selected_argument_ids=argument_ids,
            selected_cta_ids=cta_ids,
            personalization=Personalization(preferences=preferences, seed=self._seed),
        )
