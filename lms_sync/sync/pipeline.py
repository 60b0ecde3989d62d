"""
Pure helpers of the list-fetch pipeline: filter cleaning and page merging.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from lms_sync.schemas.core import Item


UNSET_SENTINELS = ("", "all")

DataProcessor = Callable[[Item], Item]


def is_unset(value: Any) -> bool:
    """True for values that mean "no filter"."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() in UNSET_SENTINELS:
        return True
    return False


def clean_filters(filters: Mapping[str, Any]) -> dict[str, Any]:
    """Drop unset filter values, keeping the original key order."""
    return {key: value for key, value in filters.items() if not is_unset(value)}


def process_items(items: Sequence[Item], processor: DataProcessor | None) -> list[Item]:
    if processor is None:
        return list(items)
    return [processor(item) for item in items]


def merge_page(current: Sequence[Item], incoming: Sequence[Item], replace: bool) -> list[Item]:
    """Replace the list, or append only ids not already present.

    Existing order is kept and appended items follow in server order.
    """
    if replace:
        return list(incoming)

    seen = {item.get("id") for item in current}
    merged = list(current)
    for item in incoming:
        item_id = item.get("id")
        if item_id in seen:
            continue
        seen.add(item_id)
        merged.append(item)
    return merged


def to_int(value: Any, default: int = 0) -> int:
    """Lenient integer coercion for meta values ("12", 12.0, None)."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
