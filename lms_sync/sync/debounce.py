"""
Debouncing of filter changes on the running asyncio loop.
"""

import asyncio
from collections.abc import Callable


class Debouncer:
    """Runs a callback once a burst of ``schedule`` calls has gone quiet.

    Every ``schedule`` call cancels the pending timer and arms a new one
    ``delay_ms`` in the future. The callback receives no arguments, so it
    reads whatever state is current when the timer fires.
    """

    def __init__(self, delay_ms: int = 500):
        self.delay_ms = delay_ms
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], object]) -> None:
        """Cancel any pending timer and arm a new one for ``callback``."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_ms / 1000, self._fire, callback)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], object]) -> None:
        self._handle = None
        callback()
