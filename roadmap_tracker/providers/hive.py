"""Client for the community voting board submission API."""

from __future__ import annotations

import time
from concurrent.futures import Executor
from typing import Mapping

import structlog

from ..config.models import HiveSettings
from ..engine.cancel import CancelToken
from ..engine.fetcher import FetchRequest, Fetcher
from ..engine.pages import PageFetcher
from ..errors import MalformedUpstreamPayload, RoadmapError
from ..mapping.hive import SOURCE, HiveEnvelope, decode_envelope, map_hive_page
from ..models import CanonicalItem, Query, SortField, SortSpec
from .base import ColumnSpec, ProbeResult, ProviderClient

# Upstream names for the sort fields the submission API understands.
UPSTREAM_SORT_FIELDS = {
    SortField.TITLE: "title",
    SortField.CREATED_AT: "date",
    SortField.UPDATED_AT: "lastModified",
    SortField.TARGET_AT: "eta",
    SortField.UPVOTES: "upvotes",
}


def _flag(value: bool) -> str:
    return "true" if value else "false"


class HiveClient(ProviderClient):
    """Fetch every page of one board column and map it to canonical items.

    Column filtering happens upstream through the status id, so the local
    filter set of every column is empty.
    """

    name = SOURCE

    def __init__(
        self,
        settings: HiveSettings,
        fetcher: Fetcher,
        executor: Executor,
        *,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.executor = executor
        self.logger = logger or structlog.get_logger("roadmap_tracker.providers.hive")
        self._default_sort = SortSpec.parse(settings.default_sort)
        self._columns = {
            name: ColumnSpec(name=name, identifier=status_id)
            for name, status_id in settings.status_ids.items()
        }

    @property
    def columns(self) -> Mapping[str, ColumnSpec]:
        return self._columns

    def default_sort(self, column: str) -> SortSpec:
        return self._default_sort

    # ------------------------------------------------------------------
    def build_params(self, query: Query, page: int) -> dict[str, str]:
        sort = query.sort or self._default_sort
        direction = "desc" if sort.descending else "asc"
        return {
            "s": self._columns[query.column].identifier,
            "sortBy": f"{UPSTREAM_SORT_FIELDS[sort.field]}:{direction}",
            "inReview": _flag(query.in_review or self.settings.in_review),
            "includePinned": _flag(query.include_pinned and self.settings.include_pinned),
            "page": str(page),
        }

    def build_request(self, query: Query, page: int) -> FetchRequest:
        return FetchRequest(
            url=self.settings.base_url,
            params=self.build_params(query, page),
            bypass_cache=query.bypass_cache,
        )

    def fetch_pages(self, query: Query, cancel: CancelToken) -> list[HiveEnvelope]:
        pages: PageFetcher[HiveEnvelope] = PageFetcher(
            self.fetcher,
            self.executor,
            build_request=lambda page: self.build_request(query, page),
            decode=lambda body: decode_envelope(body, self.name),
            total_pages=lambda envelope: envelope.total_pages,
            max_concurrency=self.settings.max_concurrency,
            max_pages=self.settings.max_pages,
            logger=self.logger,
        )
        return pages.fetch_all(cancel)

    def fetch_items(self, query: Query, cancel: CancelToken) -> list[CanonicalItem]:
        items: list[CanonicalItem] = []
        for envelope in self.fetch_pages(query, cancel):
            items.extend(map_hive_page(envelope, url_prefix=self.settings.item_url_prefix))
        return items

    def fetch_raw_page(self, query: Query, cancel: CancelToken) -> bytes:
        return self.fetcher.fetch(self.build_request(query, query.page), cancel).body

    def probe(self, cancel: CancelToken) -> ProbeResult:
        column = next(iter(self._columns))
        request = self.build_request(Query(column=column, bypass_cache=True), 1)
        started = time.perf_counter()
        try:
            response = self.fetcher.probe(request, cancel)
        except RoadmapError as exc:
            return ProbeResult(
                provider=self.name,
                ok=False,
                latency_ms=int((time.perf_counter() - started) * 1000),
                error=str(exc),
            )
        latency_ms = int((time.perf_counter() - started) * 1000)
        result = ProbeResult(
            provider=self.name,
            ok=response.status_code < 400,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        if not result.ok:
            result.error = f"upstream status {response.status_code}"
            return result
        try:
            result.items = len(decode_envelope(response.body, self.name).results)
        except MalformedUpstreamPayload as exc:
            result.ok = False
            result.error = str(exc)
        return result

    def close(self) -> None:
        self.fetcher.close()


__all__ = ["HiveClient", "UPSTREAM_SORT_FIELDS"]
