"""In-process token and cost accounting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Protocol, runtime_checkable

from pydantic import BaseModel

from amplifier.config.catalog import Catalog

DAILY_RETENTION_DAYS = 90


class UsageRecord(BaseModel):
    cost: float
    tokens: int


@dataclass
class UsageTotals:
    tokens: int = 0
    cost: float = 0.0
    requests: int = 0

    def add(self, tokens: int, cost: float) -> None:
        self.tokens += tokens
        self.cost += cost
        self.requests += 1


@runtime_checkable
class UsageRecorder(Protocol):
    async def record_usage(self, input_tokens: int, output_tokens: int, model: str) -> UsageRecord:
        ...


class UsageTracker:
    def __init__(self, catalog: Catalog, today: Callable[[], date] = date.today) -> None:
        self._catalog = catalog
        self._today = today
        self.daily: dict[str, UsageTotals] = {}
        self.monthly: dict[str, UsageTotals] = {}
        self.all_time = UsageTotals()

    def calculate_cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        pricing = self._catalog.pricing(model)
        return (input_tokens / 1_000_000) * pricing.input + (output_tokens / 1_000_000) * pricing.output

    async def record_usage(self, input_tokens: int, output_tokens: int, model: str) -> UsageRecord:
        cost = self.calculate_cost(model, input_tokens, output_tokens)
        tokens = input_tokens + output_tokens
        today = self._today()

        self.daily.setdefault(today.isoformat(), UsageTotals()).add(tokens, cost)
        self.monthly.setdefault(today.strftime("%Y-%m"), UsageTotals()).add(tokens, cost)
        self.all_time.add(tokens, cost)

        cutoff = (today - timedelta(days=DAILY_RETENTION_DAYS)).isoformat()
        for key in [k for k in self.daily if k < cutoff]:
            del self.daily[key]
        return UsageRecord(cost=cost, tokens=tokens)

    def stats(self) -> dict[str, UsageTotals]:
        today = self._today()
        return {
            "today": self.daily.get(today.isoformat(), UsageTotals()),
            "this_month": self.monthly.get(today.strftime("%Y-%m"), UsageTotals()),
            "all_time": self.all_time,
        }


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost:.4f}"
    if cost < 1:
        return f"${cost:.3f}"
    return f"${cost:.2f}"


def format_tokens(tokens: int) -> str:
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.2f}M"
    if tokens >= 1_000:
        return f"{tokens / 1_000:.1f}K"
    return str(tokens)
