"""
Aggregate calculator plumbing: the default status counter and helpers.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pydantic import BaseModel

from lms_sync.schemas.core import Item
from lms_sync.schemas.stats import StatusStats


AggregateCalculator = Callable[[Sequence[Item]], BaseModel]


def count_status(items: Iterable[Item], status: str) -> int:
    return sum(1 for item in items if item.get("status") == status)


def status_stats(items: Sequence[Item]) -> StatusStats:
    """Default calculator: counts by publication status."""
    return StatusStats(
        total=len(items),
        published=count_status(items, "publish"),
        draft=count_status(items, "draft"),
        private=count_status(items, "private"),
    )


def tally(counter: dict[str, int], key: Any) -> None:
    counter[str(key)] = counter.get(str(key), 0) + 1


def safe_average(total: float, count: int) -> float:
    """Average that yields 0 for an empty population."""
    return total / count if count > 0 else 0


class MemoizedAggregate:
    """Caches a calculator result keyed on the identity of the item list."""

    def __init__(self, calculator: AggregateCalculator):
        self.calculator = calculator
        self._source: Sequence[Item] | None = None
        self._value: BaseModel | None = None

    def get(self, items: Sequence[Item]) -> BaseModel:
        if self._value is None or items is not self._source:
            self._value = self.calculator(items)
            self._source = items
        return self._value
