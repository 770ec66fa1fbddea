"""Author profile cache backed by SQLite (aiosqlite).

Profiles live for seven days; reads of an expired row delete it. The table is
capped at MAX_ENTRIES and the oldest EVICT_COUNT rows are dropped when full.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

import aiosqlite

from amplifier.models import ProfileContext

_log = logging.getLogger(__name__)

CACHE_TTL = 7 * 24 * 60 * 60
MAX_ENTRIES = 500
EVICT_COUNT = 100

# ── Category detection ───────────────────────────────────────────────────────
# Checked in order; the first table with a substring hit wins.

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("journalist", (
        "journalist", "reporter", "correspondent", "editor", "news",
        "جورنالیست", "خبرنگار", "روزنامه‌نگار",
        "@nytimes", "@washingtonpost", "@bbc", "@cnn", "@reuters", "@ap",
        "@vaboradio", "@manikinevoa", "@iranintl", "@bbcpersian",
    )),
    ("activist", (
        "activist", "human rights", "advocate", "campaigner",
        "فعال", "حقوق بشر", "مبارز",
        "amnesty", "hrw", "iranhr",
    )),
    ("academic", (
        "professor", "researcher", "scholar", "phd", "dr.", "university", "academic",
        "استاد", "پژوهشگر",
    )),
    ("politician", (
        "senator", "congressman", "representative", "ambassador", "minister", "official",
        "parliament", "mp", "mep", "former", "ex-", "state dept",
    )),
    ("artist", (
        "artist", "musician", "filmmaker", "director", "actor", "actress", "writer",
        "author", "poet",
        "هنرمند", "نویسنده", "شاعر",
    )),
    ("diaspora", (
        "iranian-american", "iranian american", "persian", "iraniandaily", "iran",
        "ایران", "ایرانی", "diaspora",
    )),
)


def detect_category(bio: str | None, display_name: str | None = "") -> str:
    text = f"{bio or ''} {display_name or ''}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return "unknown"


def get_follower_category(count: int) -> str:
    if count < 1_000:
        return "small"
    if count < 10_000:
        return "medium"
    if count < 100_000:
        return "large"
    if count < 1_000_000:
        return "huge"
    return "celebrity"


def parse_follower_count(text: str | None) -> int:
    """Parse display counts like "12.5K", "3M" or "1,234"."""
    if not text:
        return 0
    cleaned = text.strip().lower()
    try:
        if "k" in cleaned:
            return round(float(cleaned.replace("k", "").replace(",", "")) * 1_000)
        if "m" in cleaned:
            return round(float(cleaned.replace("m", "").replace(",", "")) * 1_000_000)
        return int(cleaned.replace(",", ""))
    except ValueError:
        return 0


def normalize_handle(handle: str) -> str:
    return handle.lower().replace("@", "")


# ── Store ────────────────────────────────────────────────────────────────────

class ProfileCache:
    def __init__(
        self,
        db_path: str | None = None,
        *,
        ttl: float = CACHE_TTL,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = db_path or os.getenv("AMPLIFIER_DB_PATH", "amplifier.db")
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._ready = False

    async def init(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    handle       TEXT PRIMARY KEY,
                    profile_json TEXT NOT NULL,
                    cached_at    REAL NOT NULL
                )
            """)
            await db.commit()
        self._ready = True

    async def _ensure(self) -> None:
        if not self._ready:
            await self.init()

    async def get(self, handle: str) -> ProfileContext | None:
        await self._ensure()
        key = normalize_handle(handle)
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT profile_json, cached_at FROM profiles WHERE handle = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            if self._clock() - row[1] > self.ttl:
                await db.execute("DELETE FROM profiles WHERE handle = ?", (key,))
                await db.commit()
                return None
        return ProfileContext.model_validate_json(row[0])

    async def put(self, profile: ProfileContext) -> ProfileContext:
        """Store a profile; follower bucket and timestamp are recomputed."""
        await self._ensure()
        stored = profile.model_copy(update={
            "follower_category": get_follower_category(profile.follower_count),
            "category": profile.category or "unknown",
            "cached_at": self._clock(),
        })
        key = normalize_handle(profile.handle)
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM profiles") as cursor:
                (count,) = await cursor.fetchone()
            if count >= self.max_entries:
                await db.execute(
                    "DELETE FROM profiles WHERE handle IN "
                    "(SELECT handle FROM profiles ORDER BY cached_at ASC LIMIT ?)",
                    (EVICT_COUNT,),
                )
                _log.info("Evicted %d oldest cached profiles", min(EVICT_COUNT, count))
            await db.execute(
                "INSERT OR REPLACE INTO profiles (handle, profile_json, cached_at) VALUES (?, ?, ?)",
                (key, stored.model_dump_json(), stored.cached_at),
            )
            await db.commit()
        return stored

    async def cleanup_expired(self) -> int:
        await self._ensure()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM profiles WHERE cached_at < ?", (self._clock() - self.ttl,)
            )
            removed = cursor.rowcount
            await db.commit()
        if removed:
            _log.info("Removed %d expired profiles", removed)
        return removed

    async def clear(self) -> None:
        await self._ensure()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM profiles")
            await db.commit()
