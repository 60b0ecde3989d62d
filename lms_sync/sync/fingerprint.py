"""
Request fingerprints for duplicate-fetch suppression.
"""

import json
from collections.abc import Mapping
from typing import Any


def fingerprint(reset: bool, filters: Mapping[str, Any], page: int) -> str:
    """Stable identity string for a list fetch."""
    return json.dumps(
        {"reset": reset, "filters": dict(filters), "page": page},
        sort_keys=True,
        default=str,
    )


class FingerprintGate:
    """Remembers the last dispatched fingerprint and rejects exact repeats.

    Not a lock: two different fingerprints are both admitted and race.
    """

    def __init__(self) -> None:
        self._last: str | None = None

    @property
    def last(self) -> str | None:
        return self._last

    def admit(self, fp: str) -> bool:
        """Record ``fp`` and return True, or return False if it repeats the last one."""
        if fp == self._last:
            return False
        self._last = fp
        return True

    def clear(self) -> None:
        self._last = None
