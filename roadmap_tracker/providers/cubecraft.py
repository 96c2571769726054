"""Client for the workspace-wiki roadmap collection."""

from __future__ import annotations

import time
from typing import Any, Mapping

import structlog

from ..config.models import CubecraftSettings
from ..engine.cache import ResponseCache
from ..engine.cancel import CancelToken
from ..engine.fetcher import FetchRequest, Fetcher
from ..errors import MalformedUpstreamPayload, RoadmapError
from ..mapping.notion import (
    ROW_SCHEMA,
    SOURCE,
    STATUS_LABELS,
    decode_collection,
    map_collection,
)
from ..models import CanonicalItem, Query, SortSpec
from .base import ColumnSpec, ProbeResult, ProviderClient

ITEMS_CACHE_KEY = "collection-items"

GROUP_ORDER = (
    ("Information", False),
    ("In Progress", False),
    ("Testing", False),
    ("Released", False),
    ("Scrapped", True),
    ("BLOCKED", True),
    (None, True),
)

COLUMN_STATUSES = {
    "in-progress": "In Progress",
    "coming-next": "Testing",
    "released": "Released",
}

DEFAULT_SORTS = {
    "released": SortSpec.parse("releasedAt:desc"),
    "in-progress": SortSpec.parse("lastUpdated:desc"),
    "coming-next": SortSpec.parse("lastUpdated:desc"),
}
FALLBACK_SORT = SortSpec.parse("title:asc")


def build_collection_query(settings: CubecraftSettings) -> dict[str, Any]:
    """The board query: rows grouped by status, newest release first."""

    status_key = ROW_SCHEMA["status"].key
    groups = []
    for value, hidden in GROUP_ORDER:
        group_value: dict[str, Any] = {"type": "select"}
        if value is not None:
            group_value["value"] = value
        groups.append({"value": group_value, "hidden": hidden, "property": status_key})
    return {
        "source": {
            "type": "collection",
            "id": settings.collection_id,
            "spaceId": settings.space_id,
        },
        "collectionView": {"id": settings.view_id, "spaceId": settings.space_id},
        "loader": {
            "reducers": {
                "board_columns": {
                    "type": "groups",
                    "version": "v2",
                    "returnPinnedGroups": True,
                    "groupBy": {
                        "sort": {"type": "manual"},
                        "type": "select",
                        "property": status_key,
                    },
                    "groupSortPreference": groups,
                    "limit": 10,
                    "aggregation": {
                        "type": "independent",
                        "groupAggregation": {"aggregator": "count"},
                    },
                    "blockResults": {
                        "type": "independent",
                        "defaultLimit": 50,
                        "loadContentCover": False,
                        "groupOverrides": {},
                    },
                }
            },
            "sort": [{"property": ROW_SCHEMA["released_at"].key, "direction": "descending"}],
            "searchQuery": "",
            "userTimeZone": settings.time_zone,
        },
    }


class CubecraftClient(ProviderClient):
    """Query the whole collection in one POST and cache the mapped rows.

    The upstream returns every row at once, so grouping and counting happen
    locally through the column status filter.
    """

    name = SOURCE

    def __init__(
        self,
        settings: CubecraftSettings,
        fetcher: Fetcher,
        *,
        cache: ResponseCache | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.cache = cache if cache is not None else ResponseCache()
        self.logger = logger or structlog.get_logger("roadmap_tracker.providers.cubecraft")
        self._payload = build_collection_query(settings)
        self._columns = {
            name: ColumnSpec(
                name=name,
                identifier=f"notion:{name}",
                statuses=frozenset({status}),
                label=STATUS_LABELS.get(status, status),
            )
            for name, status in COLUMN_STATUSES.items()
        }

    @property
    def columns(self) -> Mapping[str, ColumnSpec]:
        return self._columns

    def default_sort(self, column: str) -> SortSpec:
        return DEFAULT_SORTS.get(column, FALLBACK_SORT)

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Cookie": self.settings.cookie(),
            "x-notion-space-id": self.settings.space_id,
            "x-notion-active-user-header": "",
            "notion-client-version": self.settings.client_version,
            "notion-audit-log-platform": "web",
        }

    def build_request(self) -> FetchRequest:
        return FetchRequest(
            url=self.settings.query_url,
            method="POST",
            json=self._payload,
            headers=self.headers(),
            bypass_cache=True,
        )

    # ------------------------------------------------------------------
    def fetch_items(self, query: Query, cancel: CancelToken) -> list[CanonicalItem]:
        if not query.bypass_cache:
            cached, hit = self.cache.get(ITEMS_CACHE_KEY)
            if hit:
                self.logger.debug("cache_hit", provider=self.name, key=ITEMS_CACHE_KEY)
                return list(cached)
        response = self.fetcher.fetch(self.build_request(), cancel)
        envelope = decode_collection(response.body, self.name)
        items = map_collection(
            envelope,
            site_base_url=self.settings.site_base_url,
            view_id=self.settings.view_id,
        )
        if not query.bypass_cache:
            self.cache.put(ITEMS_CACHE_KEY, tuple(items), self.settings.cache_ttl)
        return items

    def fetch_raw_page(self, query: Query, cancel: CancelToken) -> bytes:
        return self.fetcher.fetch(self.build_request(), cancel).body

    def probe(self, cancel: CancelToken) -> ProbeResult:
        started = time.perf_counter()
        try:
            response = self.fetcher.probe(self.build_request(), cancel)
        except RoadmapError as exc:
            return ProbeResult(
                provider=self.name,
                ok=False,
                latency_ms=int((time.perf_counter() - started) * 1000),
                error=str(exc),
            )
        result = ProbeResult(
            provider=self.name,
            ok=response.status_code < 400,
            status_code=response.status_code,
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        try:
            envelope = decode_collection(response.body, self.name)
        except MalformedUpstreamPayload as exc:
            result.ok = False
            result.error = str(exc)
            return result
        result.items = sum(
            1
            for raw in envelope.record_map.block.values()
            if isinstance(raw, dict)
            and isinstance(raw.get("value"), dict)
            and raw["value"].get("parent_table") == "collection"
        )
        if not result.ok:
            result.error = f"upstream status {response.status_code}"
        return result

    def close(self) -> None:
        self.fetcher.close()


__all__ = [
    "COLUMN_STATUSES",
    "CubecraftClient",
    "DEFAULT_SORTS",
    "build_collection_query",
]
