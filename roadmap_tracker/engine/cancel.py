"""Cooperative cancellation shared by a fetch and its workers."""

from __future__ import annotations

import time
from threading import Event
from typing import Callable

from ..errors import FetchCancelled


class CancelToken:
    """Explicit cancel flag plus an optional deadline."""

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._event = Event()
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""

        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def bound_timeout(self, timeout: float) -> float:
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise FetchCancelled("fetch cancelled by caller")
        if self.cancelled:
            raise FetchCancelled("fetch deadline exceeded")


__all__ = ["CancelToken"]
