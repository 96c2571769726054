"""Provider contract and the per-provider roadmap service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping

import structlog

from ..engine.cancel import CancelToken
from ..engine.paginator import filter_items, paginate, select_page, sort_items
from ..engine.tracker import ChangeTracker
from ..errors import InvalidQuery
from ..models import CanonicalItem, ChangeEntry, Query, RoadmapPage, SortSpec


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    """A logical column and what it means upstream.

    ``identifier`` is what the provider calls the column (a status id or a
    group label). ``statuses`` is the local filter set applied to mapped items;
    an empty set matches everything.
    """

    name: str
    identifier: str
    statuses: frozenset[str] = frozenset()
    label: str = ""


@dataclass(slots=True)
class ProbeResult:
    provider: str
    ok: bool
    status_code: int = 0
    latency_ms: int = 0
    items: int = 0
    error: str = ""

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ok": self.ok,
            "status": self.status_code,
            "latencyMs": self.latency_ms,
            "items": self.items,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class ProviderClient(ABC):
    """Upstream access for one provider."""

    name: str = ""

    @property
    @abstractmethod
    def columns(self) -> Mapping[str, ColumnSpec]:
        """Logical columns keyed by lower-case name."""

    @abstractmethod
    def default_sort(self, column: str) -> SortSpec:
        """Sort applied when the caller does not ask for one."""

    @abstractmethod
    def fetch_items(self, query: Query, cancel: CancelToken) -> list[CanonicalItem]:
        """Every canonical item behind ``query``, in upstream order."""

    @abstractmethod
    def fetch_raw_page(self, query: Query, cancel: CancelToken) -> bytes:
        """The untouched upstream body for ``query.page``."""

    @abstractmethod
    def probe(self, cancel: CancelToken) -> ProbeResult:
        """One uncached round-trip reporting status, latency and item count."""

    def close(self) -> None:  # pragma: no cover - default no-op
        return None


@dataclass(slots=True)
class RoadmapService:
    """Query, paginate and track one provider.

    The tracker sees every item a fetch returns before the column filter is
    applied, so a transition is detected whichever column was asked for.
    """

    client: ProviderClient
    tracker: ChangeTracker
    page_size: int = 10
    logger: Any = field(default=None)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.logger is None:
            self.logger = structlog.get_logger("roadmap_tracker.service").bind(
                provider=self.client.name
            )

    @property
    def name(self) -> str:
        return self.client.name

    def resolve_column(self, column: str) -> ColumnSpec:
        spec = self.client.columns.get(column.strip().lower())
        if spec is None:
            choices = ", ".join(self.client.columns)
            raise InvalidQuery(f"column must be one of [{choices}], got '{column}'")
        return spec

    def build_query(
        self,
        column: str,
        *,
        page: int = 1,
        sort: str | None = None,
        bypass_cache: bool = False,
        in_review: bool = False,
        include_pinned: bool = True,
    ) -> Query:
        """Validate caller input into a ``Query`` without touching the network."""

        spec = self.resolve_column(column)
        return Query(
            column=spec.name,
            page=page,
            sort=SortSpec.parse(sort) if sort else None,
            bypass_cache=bypass_cache,
            in_review=in_review,
            include_pinned=include_pinned,
        )

    def get_page(self, query: Query, cancel: CancelToken | None = None) -> RoadmapPage:
        items = self._collect(query, cancel or CancelToken())
        return select_page(items, query.page, self.page_size)

    def get_all(self, query: Query, cancel: CancelToken | None = None) -> list[RoadmapPage]:
        items = self._collect(query, cancel or CancelToken())
        return paginate(items, self.page_size)

    def get_raw(self, query: Query, cancel: CancelToken | None = None) -> bytes:
        self.resolve_column(query.column)
        return self.client.fetch_raw_page(query, cancel or CancelToken())

    def columns(self) -> dict[str, str]:
        return {name: spec.identifier for name, spec in self.client.columns.items()}

    def updates(self) -> list[ChangeEntry]:
        return self.tracker.read()

    def probe(self, cancel: CancelToken | None = None) -> ProbeResult:
        return self.client.probe(cancel or CancelToken())

    def close(self) -> None:
        self.client.close()

    def _collect(self, query: Query, cancel: CancelToken) -> list[CanonicalItem]:
        spec = self.resolve_column(query.column)
        items = self.client.fetch_items(query, cancel)
        self.tracker.record(items)
        selected = filter_items(items, spec.statuses)
        ordered = sort_items(selected, query.sort or self.client.default_sort(spec.name))
        self.logger.debug(
            "items_collected",
            column=spec.name,
            fetched=len(items),
            selected=len(ordered),
        )
        return ordered


__all__ = ["ColumnSpec", "ProbeResult", "ProviderClient", "RoadmapService"]
