"""Filter, sort and re-paginate canonical items."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, Collection, Iterable, Sequence

from ..errors import InvalidQuery
from ..models import CanonicalItem, PageMeta, RoadmapPage, SortField, SortSpec

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

_SORT_KEYS: dict[SortField, Callable[[CanonicalItem], Any]] = {
    SortField.TITLE: lambda item: item.title.casefold(),
    SortField.CREATED_AT: lambda item: item.created_at,
    SortField.UPDATED_AT: lambda item: item.updated_at,
    SortField.TARGET_AT: lambda item: item.target_at or _EARLIEST,
    SortField.UPVOTES: lambda item: item.upvotes or 0,
}


def filter_items(items: Iterable[CanonicalItem], statuses: Collection[str]) -> list[CanonicalItem]:
    """Keep items whose provider status is in ``statuses``; empty means keep all."""

    if not statuses:
        return list(items)
    return [item for item in items if item.provider_status in statuses]


def sort_items(items: Iterable[CanonicalItem], spec: SortSpec) -> list[CanonicalItem]:
    # sorted() is stable in both directions, ties keep their input order
    return sorted(items, key=_SORT_KEYS[spec.field], reverse=spec.descending)


def page_count(total: int, limit: int) -> int:
    return max(1, math.ceil(total / limit))


def paginate(items: Sequence[CanonicalItem], limit: int) -> list[RoadmapPage]:
    """Slice ``items`` into pages of ``limit``; an empty input yields one empty page."""

    if limit < 1:
        raise InvalidQuery(f"page size must be >= 1, got {limit}")
    total = len(items)
    pages_total = page_count(total, limit)
    return [
        RoadmapPage(
            meta=PageMeta(page=number, limit=limit, total_pages=pages_total, total_results=total),
            items=tuple(items[(number - 1) * limit : number * limit]),
        )
        for number in range(1, pages_total + 1)
    ]


def select_page(items: Sequence[CanonicalItem], page: int, limit: int) -> RoadmapPage:
    """Return one page; past the end yields an empty page with the true totals."""

    if page < 1:
        raise InvalidQuery(f"page must be >= 1, got {page}")
    if limit < 1:
        raise InvalidQuery(f"page size must be >= 1, got {limit}")
    total = len(items)
    start = (page - 1) * limit
    return RoadmapPage(
        meta=PageMeta(
            page=page, limit=limit, total_pages=page_count(total, limit), total_results=total
        ),
        items=tuple(items[start : start + limit]),
    )


__all__ = ["filter_items", "page_count", "paginate", "select_page", "sort_items"]
