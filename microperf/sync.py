"""A start barrier that stays closed until explicitly unlocked."""

from __future__ import annotations

import threading


class Barrier:
    """Strands arrive and block until a controller unlocks the barrier."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._count = 0
        self._count_lock = threading.Lock()
        self._open = threading.Event()

    @property
    def count(self) -> int:
        return self._count

    def wait(self, timeout: float | None = None) -> None:
        """Register arrival and block until unlocked; TimeoutError if it stays closed."""
        if self.limit <= 0:
            raise ValueError("barrier limit must be positive")
        with self._count_lock:
            self._count += 1
        if not self._open.wait(timeout):
            raise TimeoutError("barrier was not unlocked in time")

    def unlock(self) -> None:
        """Release every waiting strand and let later arrivals pass."""
        self._open.set()

    def not_reached(self) -> int:
        """How many strands have yet to arrive."""
        return self.limit - self._count

    def reached(self) -> bool:
        return self.not_reached() == 0