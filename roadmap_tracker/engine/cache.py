"""Time-to-live cache for upstream payloads and decoded results."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Hashable, Tuple


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    expires_at: float


class ResponseCache:
    """Key/value store where every entry expires after its own TTL.

    Entries are immutable snapshots replaced wholesale on ``put``, so readers
    see either the previous or the new complete value. Single dict reads and
    writes need no lock; only eviction of an expired entry takes one, to avoid
    dropping a fresh entry stored concurrently under the same key.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._evict_lock = Lock()

    def get(self, key: Hashable) -> Tuple[Any, bool]:
        entry = self._entries.get(key)
        if entry is None:
            return None, False
        if self._clock() < entry.expires_at:
            return entry.value, True
        with self._evict_lock:
            if self._entries.get(key) is entry:
                del self._entries[key]
        return None, False

    def put(self, key: Hashable, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["CacheEntry", "ResponseCache"]
