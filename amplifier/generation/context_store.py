"""In-memory conversation state, one entry per post.

Each post keeps a shared analysis plus two independent tabs (reply, quote),
each with its own bounded history and cached drafts. Nothing is persisted;
``run_housekeeping`` wipes the store on a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from amplifier.models import DraftResponse, PostData

_log = logging.getLogger(__name__)

MAX_HISTORY = 10
CLEAR_INTERVAL_SECONDS = 30 * 60


@dataclass
class TabContext:
    history: list[dict[str, str]] = field(default_factory=list)
    cached_responses: list[DraftResponse] = field(default_factory=list)
    last_generated_at: float | None = None

    def append_turn(self, user_content: str, assistant_content: str, limit: int = MAX_HISTORY) -> None:
        self.history.append({"role": "user", "content": user_content})
        self.history.append({"role": "assistant", "content": assistant_content})
        if len(self.history) > limit:
            del self.history[:-limit]

    def commit(self, responses: list[DraftResponse]) -> None:
        self.cached_responses = list(responses)
        self.last_generated_at = time.time()


@dataclass
class ConversationContext:
    post: PostData | None = None
    shared_analysis: dict[str, Any] | None = None
    reply: TabContext = field(default_factory=TabContext)
    quote: TabContext = field(default_factory=TabContext)

    def tab(self, response_type: str) -> TabContext:
        if response_type == "reply":
            return self.reply
        if response_type == "quote":
            return self.quote
        raise ValueError(f"Unknown response type: {response_type!r}")


class ContextStore:
    """Map of post key -> ConversationContext."""

    def __init__(self) -> None:
        self._contexts: dict[str, ConversationContext] = {}

    def get(self, key: str) -> ConversationContext | None:
        return self._contexts.get(key)

    def create(self, key: str, post: PostData | None = None) -> ConversationContext:
        context = ConversationContext(post=post)
        self._contexts[key] = context
        return context

    def get_or_create(self, key: str, post: PostData | None = None) -> ConversationContext:
        context = self._contexts.get(key)
        if context is None:
            context = self.create(key, post)
        return context

    def delete(self, key: str) -> bool:
        return self._contexts.pop(key, None) is not None

    def clear_all(self) -> int:
        count = len(self._contexts)
        self._contexts.clear()
        return count

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, key: object) -> bool:
        return key in self._contexts


async def run_housekeeping(store: ContextStore, interval: float = CLEAR_INTERVAL_SECONDS) -> None:
    """Clear every context each ``interval`` seconds, until cancelled."""
    while True:
        await asyncio.sleep(interval)
        cleared = store.clear_all()
        _log.info("Cleared %d conversation contexts", cleared)
