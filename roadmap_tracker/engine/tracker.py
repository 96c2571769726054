"""Status-change bookkeeping with a sliding retention window."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Iterable

import structlog

from ..models import CanonicalItem, ChangeEntry

DEFAULT_RETENTION = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeTracker:
    """Remember the last status of every item and log transitions.

    The first sighting of an identifier only seeds the index. Entries older
    than ``retention`` are pruned at the start of every ``record`` and
    ``read``; there is no background timer. ``index_limit`` caps the status
    index by evicting the least recently observed identifiers; ``None`` keeps
    every identifier for the life of the tracker.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        *,
        clock: Callable[[], datetime] = _utcnow,
        index_limit: int | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if index_limit is not None and index_limit < 1:
            raise ValueError("index_limit must be >= 1")
        self.retention = retention
        self.index_limit = index_limit
        self._clock = clock
        self._lock = Lock()
        self._previous: OrderedDict[str, str] = OrderedDict()
        self._log: list[ChangeEntry] = []
        self.logger = logger or structlog.get_logger("roadmap_tracker.tracker")

    def record(self, items: Iterable[CanonicalItem]) -> list[ChangeEntry]:
        """Compare ``items`` with the index and return the entries appended."""

        now = self._clock()
        created: list[ChangeEntry] = []
        with self._lock:
            self._prune(now)
            for item in items:
                previous = self._previous.get(item.id)
                if previous is None:
                    self._remember(item.id, item.status)
                    continue
                self._previous.move_to_end(item.id)
                if previous == item.status:
                    continue
                entry = ChangeEntry(
                    detected_at=now, previous=previous, current=item.status, item=item
                )
                self._log.append(entry)
                self._previous[item.id] = item.status
                created.append(entry)
        for entry in created:
            self.logger.info(
                "status_changed",
                item_id=entry.item.id,
                source=entry.item.source,
                previous=entry.previous,
                current=entry.current,
            )
        return created

    def read(self) -> list[ChangeEntry]:
        """Return retained entries in detection order."""

        with self._lock:
            self._prune(self._clock())
            return list(self._log)

    def last_status(self, item_id: str) -> str | None:
        with self._lock:
            return self._previous.get(item_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._previous)

    # ------------------------------------------------------------------
    def _prune(self, now: datetime) -> None:
        keep_after = now - self.retention
        self._log = [entry for entry in self._log if entry.detected_at > keep_after]

    def _remember(self, item_id: str, status: str) -> None:
        self._previous[item_id] = status
        if self.index_limit is not None:
            while len(self._previous) > self.index_limit:
                self._previous.popitem(last=False)


__all__ = ["ChangeTracker", "DEFAULT_RETENTION"]
