"""Generation orchestrator: context, prompts, provider calls, validation, commit.

One ``generate`` call walks:

    precondition -> cache hit? -> profile -> prompts -> attempt fold
        -> refusal / warning -> usage -> history + cache commit -> result

The attempt fold makes at most MAX_VALIDATION_RETRIES + 1 provider calls,
appending the previous attempt's fix hints to the last outgoing message. A
refusal ends the fold at once; exhausted retries keep the last result and
attach a warning instead of failing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from amplifier.config.catalog import Catalog
from amplifier.config.settings import SettingsProvider
from amplifier.errors import InvalidResponseFormat, PreconditionError
from amplifier.generation.context_store import ContextStore
from amplifier.generation.validator import ValidationOutcome, validate_result
from amplifier.models import DraftResponse, GenerationResult, PostData, ProfileContext, Usage
from amplifier.profile_cache import ProfileCache, detect_category
from amplifier.prompts.builder import (
    build_api_messages,
    build_developer_context,
    build_system_prompt,
    build_user_style_prompt,
)
from amplifier.prompts.sanitizer import expand_shortcuts, sanitize_user_input
from amplifier.providers import make_adapter
from amplifier.providers.base import ProviderAdapter
from amplifier.usage import UsageRecorder

_log = logging.getLogger(__name__)

MAX_VALIDATION_RETRIES = 2
MISSING_KEY_MESSAGE = "API key not configured. Please add your API key in the extension settings."
REFUSAL_ANALYSIS = {
    "post_sentiment": "unknown",
    "key_topics": [],
    "recommended_approach": "Request refused due to policy violation.",
}


@dataclass
class AttemptOutcome:
    result: Any
    usage: Usage
    validation: ValidationOutcome
    attempts: int


def with_fix_hints(messages: list[dict], hints: list[str]) -> list[dict]:
    """Copy of ``messages`` with the hints appended to the last message only."""
    if not hints or not messages:
        return messages
    last = messages[-1]
    return [*messages[:-1], {**last, "content": f"{last['content']}\n\nIMPORTANT: {' '.join(hints)}"}]


def format_assistant_turn(response_type: str, responses: list[DraftResponse]) -> str:
    """Numbered summary stored as the assistant turn so feedback can cite #1/#2/#3."""
    text = f"Generated {response_type} responses:\n"
    for i, r in enumerate(responses, start=1):
        text += f'#{i} ({r.tone or "standard"}):\n"{r.text}"\n'
    return text


def extract_responses(result: Any, response_type: str) -> list[DraftResponse]:
    if not isinstance(result, dict):
        return []
    entries = result.get("responses")
    if entries is None:
        entries = result.get("replies" if response_type == "reply" else "quotes")
    if not isinstance(entries, list):
        return []
    drafts = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        drafts.append(DraftResponse(
            text=str(entry.get("text") or ""),
            tone=str(entry.get("tone") or "standard"),
            type=response_type,
        ))
    return drafts


class GenerationOrchestrator:
    def __init__(
        self,
        settings: SettingsProvider,
        catalog: Catalog,
        store: ContextStore,
        profiles: ProfileCache | None = None,
        usage: UsageRecorder | None = None,
        adapter_factory: Callable[[str, str], ProviderAdapter] = make_adapter,
        coalesce_inflight: bool = False,
    ) -> None:
        self._settings = settings
        self._catalog = catalog
        self.store = store
        self._profiles = profiles
        self._usage = usage
        self._adapter_factory = adapter_factory
        self._coalesce = coalesce_inflight
        self._inflight: dict[tuple, asyncio.Task] = {}

    # ── Public API ───────────────────────────────────────────────────────────

    async def generate(
        self,
        post: PostData,
        response_type: str,
        feedback: str | None = None,
        force_regenerate: bool = False,
    ) -> GenerationResult:
        if not self._coalesce:
            return await self._generate(post, response_type, feedback, force_regenerate)

        key = (post.key, response_type, feedback, force_regenerate)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._generate(post, response_type, feedback, force_regenerate))
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    def clear_context(self, post_key: str) -> bool:
        return self.store.delete(post_key)

    # ── Pipeline ─────────────────────────────────────────────────────────────

    async def _generate(
        self,
        post: PostData,
        response_type: str,
        feedback: str | None,
        force_regenerate: bool,
    ) -> GenerationResult:
        settings = await self._settings.get_settings()
        if not settings.api_key:
            raise PreconditionError(MISSING_KEY_MESSAGE)
        if response_type not in ("reply", "quote"):
            raise PreconditionError(f"Unknown response type: {response_type}")
        if not post.key:
            raise PreconditionError("Post has neither an id nor a URL")

        context = self.store.get_or_create(post.key, post)
        tab = context.tab(response_type)

        if not feedback and not force_regenerate and tab.cached_responses:
            _log.debug("cache hit post=%s type=%s", post.key, response_type)
            return GenerationResult(analysis=context.shared_analysis, responses=list(tab.cached_responses))

        profile = await self._resolve_profile(post)
        developer_context = build_developer_context(
            post,
            settings.selected_argument_ids,
            settings.selected_cta_ids,
            self._catalog,
            profile,
            response_type,
            mode="refine" if feedback else "initial",
        )
        style_prompt = build_user_style_prompt(self._catalog, settings.custom_user_prompt, settings.personalization)
        system_prompt = build_system_prompt(self._catalog, style_prompt)
        user_input = self._user_input(feedback, response_type)
        messages = build_api_messages(developer_context, tab.history, user_input)

        adapter = self._adapter_factory(settings.provider, settings.api_key)
        outcome = await self._run_attempts(adapter, settings.model, system_prompt, messages, response_type)

        result = outcome.result if isinstance(outcome.result, dict) else {}
        warning = None
        if outcome.validation.refusal:
            _log.warning("Refusing generation for post=%s: threat detected", post.key)
            result = self._refusal_result()
        elif not outcome.validation.valid:
            warning = f"Some responses may not meet all requirements: {', '.join(outcome.validation.issues)}"
            _log.warning("Returning responses after %d attempts: %s", outcome.attempts, warning)

        await self._record_usage(outcome.usage, settings.model)

        responses = extract_responses(result, response_type)
        analysis = result.get("analysis")
        if analysis is not None and not isinstance(analysis, dict):
            _log.warning("Ignoring non-object analysis of type %s", type(analysis).__name__)
            analysis = None
        user_entry = f"{developer_context}\n\n{user_input}" if not tab.history else user_input
        tab.append_turn(user_entry, format_assistant_turn(response_type, responses))
        tab.commit(responses)
        if context.shared_analysis is None and analysis is not None:
            context.shared_analysis = analysis

        return GenerationResult(
            analysis=context.shared_analysis,
            responses=responses,
            validation_warning=warning,
        )

    async def _run_attempts(
        self,
        adapter: ProviderAdapter,
        model: str,
        system_prompt: str,
        messages: list[dict],
        response_type: str,
    ) -> AttemptOutcome:
        total = Usage()
        result: Any = None
        validation = ValidationOutcome(valid=False)
        attempts = 0

        for attempt in range(MAX_VALIDATION_RETRIES + 1):
            attempts = attempt + 1
            outgoing = with_fix_hints(messages, validation.fix_hints if attempt else [])
            try:
                response = await adapter.call(model, system_prompt, outgoing)
            except InvalidResponseFormat as exc:
                if exc.usage:
                    total += exc.usage
                validation = ValidationOutcome(valid=False, issues=["invalid_json"])
                _log.warning("Attempt %d returned unparseable output", attempts)
                continue

            total += response.usage
            result = response.result
            validation = validate_result(result, True, response_type)
            if validation.valid or validation.refusal:
                break
            _log.warning("Validation failed (attempt %d): %s", attempts, validation.issues)

        return AttemptOutcome(result=result, usage=total, validation=validation, attempts=attempts)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _user_input(self, feedback: str | None, response_type: str) -> str:
        if feedback:
            expanded = expand_shortcuts(feedback, self._catalog.shortcuts())
            sanitized = sanitize_user_input(expanded)
            if sanitized:
                return f"User feedback: {sanitized}"
            return f"Generate 3 new {response_type} variations."
        return f"Generate the 3 {response_type} response variations for the original post above."

    def _refusal_result(self) -> dict:
        refusal = {"text": self._catalog.refusal_message("violence"), "tone": "refusal"}
        return {"analysis": dict(REFUSAL_ANALYSIS), "replies": [refusal], "quotes": [dict(refusal)]}

    async def _resolve_profile(self, post: PostData) -> ProfileContext | None:
        author = post.author
        if not author.handle:
            return None
        bio = author.bio or ""

        if self._profiles is None:
            return ProfileContext(
                handle=author.handle,
                display_name=author.display_name,
                bio=bio,
                category=detect_category(bio, author.display_name),
                is_verified=author.is_verified,
            )

        try:
            profile = await self._profiles.get(author.handle)
            if profile is None or (bio and not profile.bio):
                await self._profiles.put(ProfileContext(
                    handle=author.handle,
                    display_name=author.display_name,
                    bio=bio,
                    follower_count=profile.follower_count if profile else 0,
                    category=detect_category(bio, author.display_name),
                    is_verified=author.is_verified,
                ))
                profile = await self._profiles.get(author.handle)
            return profile
        except Exception as exc:
            _log.warning("Profile cache unavailable for @%s: %s", author.handle, exc)
            return None

    async def _record_usage(self, usage: Usage, model: str) -> None:
        if self._usage is None:
            return
        try:
            await self._usage.record_usage(usage.input_tokens, usage.output_tokens, model)
        except Exception as exc:
            _log.warning("Failed to record usage: %s", exc)
