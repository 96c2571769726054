"""Canonical records shared by every provider."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import InvalidQuery


@dataclass(frozen=True, slots=True)
class CanonicalItem:
    """One roadmap entry normalised across providers.

    Timestamps are timezone-aware UTC datetimes. ``provider_status`` keeps the
    upstream status value used for column filtering, ``status`` is the label
    shown to consumers and compared by the change tracker.
    """

    id: str
    source: str
    title: str
    status: str
    created_at: datetime
    updated_at: datetime
    url: str
    provider_status: str = ""
    slug: str = ""
    category: str | None = None
    target_at: datetime | None = None
    upvotes: int | None = None
    pinned: bool = False
    network: str | None = None
    project_lead: str | None = None
    release_post: str | None = None
    content_html: str = ""
    content_text: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("CanonicalItem.id cannot be empty")

    @property
    def released(self) -> bool:
        return self.status.lower() == "released"

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready view with camelCase keys and unix-second timestamps."""

        payload: dict[str, Any] = {
            "id": self.id,
            "slug": self.slug or self.id,
            "title": self.title,
            "status": self.status,
            "category": self.category or "",
            "date": _iso(self.created_at),
            "lastModified": _iso(self.updated_at),
            "dateUnix": int(self.created_at.timestamp()),
            "lastModifiedUnix": int(self.updated_at.timestamp()),
            "hasEta": self.target_at is not None,
            "released": self.released,
            "url": self.url,
            "source": self.source,
        }
        if self.target_at is not None:
            payload["eta"] = _iso(self.target_at)
        if self.upvotes is not None:
            payload["upvotes"] = self.upvotes
            payload["pinned"] = self.pinned
        if self.network:
            payload["network"] = self.network
        if self.project_lead:
            payload["projectLead"] = self.project_lead
        if self.release_post:
            payload["releasePost"] = self.release_post
        if self.content_text:
            payload["contentText"] = self.content_text
        return payload


@dataclass(frozen=True, slots=True)
class PageMeta:
    page: int
    limit: int
    total_pages: int
    total_results: int

    def as_dict(self) -> dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "totalPages": self.total_pages,
            "totalResults": self.total_results,
        }


@dataclass(frozen=True, slots=True)
class RoadmapPage:
    meta: PageMeta
    items: tuple[CanonicalItem, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta.as_dict(),
            "items": [item.as_dict() for item in self.items],
        }


@dataclass(frozen=True, slots=True)
class ChangeEntry:
    """A status transition observed between two fetches."""

    detected_at: datetime
    previous: str
    current: str
    item: CanonicalItem

    def as_dict(self) -> dict[str, Any]:
        return {
            "changedAt": _iso(self.detected_at),
            "changedAtMs": int(self.detected_at.timestamp() * 1000),
            "from": self.previous,
            "to": self.current,
            "item": self.item.as_dict(),
        }


class SortField(str, Enum):
    TITLE = "title"
    CREATED_AT = "createdAt"
    UPDATED_AT = "lastUpdated"
    TARGET_AT = "releasedAt"
    UPVOTES = "upvotes"


_FIELD_ALIASES: dict[str, SortField] = {
    "title": SortField.TITLE,
    "createdat": SortField.CREATED_AT,
    "date": SortField.CREATED_AT,
    "lastupdated": SortField.UPDATED_AT,
    "lastmodified": SortField.UPDATED_AT,
    "updatedat": SortField.UPDATED_AT,
    "releasedat": SortField.TARGET_AT,
    "eta": SortField.TARGET_AT,
    "upvotes": SortField.UPVOTES,
}


@dataclass(frozen=True, slots=True)
class SortSpec:
    field: SortField
    descending: bool = False

    @classmethod
    def parse(cls, text: str) -> "SortSpec":
        """Parse ``field[:asc|desc]``; field names are case-insensitive."""

        raw = text.strip()
        name, _, direction = raw.partition(":")
        sort_field = _FIELD_ALIASES.get(name.strip().lower())
        if sort_field is None:
            choices = ", ".join(f.value for f in SortField)
            raise InvalidQuery(f"unknown sort field '{name}', expected one of [{choices}]")
        direction = direction.strip().lower() or "asc"
        if direction not in ("asc", "desc"):
            raise InvalidQuery(f"unknown sort direction '{direction}', expected asc or desc")
        return cls(field=sort_field, descending=direction == "desc")

    def __str__(self) -> str:
        return f"{self.field.value}:{'desc' if self.descending else 'asc'}"


@dataclass(frozen=True, slots=True)
class Query:
    """A validated request for one logical column of one provider."""

    column: str
    page: int = 1
    sort: SortSpec | None = None
    bypass_cache: bool = False
    in_review: bool = False
    include_pinned: bool = True

    def __post_init__(self) -> None:
        if self.page < 1:
            raise InvalidQuery(f"page must be >= 1, got {self.page}")


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = [
    "CanonicalItem",
    "ChangeEntry",
    "PageMeta",
    "Query",
    "RoadmapPage",
    "SortField",
    "SortSpec",
]
