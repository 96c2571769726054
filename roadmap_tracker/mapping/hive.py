"""Mapping of the voting-board submission API into canonical items."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import MalformedUpstreamPayload, PartialMapFailure
from ..models import CanonicalItem
from .html import strip_html

SOURCE = "hive"
DEFAULT_ITEM_URL_PREFIX = "https://updates.playhive.com/en/p/"

logger = structlog.get_logger("roadmap_tracker.mapping.hive")


class HiveEnvelope(BaseModel):
    """One page of the submission listing with its paging metadata."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    results: list[Any] = Field(default_factory=list)
    page: int = 1
    limit: int = 0
    total_pages: int = Field(default=0, alias="totalPages")
    total_results: int = Field(default=0, alias="totalResults")


class _PostStatus(BaseModel):
    name: str = ""


class _PostCategory(BaseModel):
    name: dict[str, str] = Field(default_factory=dict)


class HiveSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    slug: str = ""
    title: str = ""
    content: str = ""
    upvotes: int = 0
    date: datetime
    last_modified: datetime = Field(alias="lastModified")
    pinned: bool = False
    eta: str | None = None
    post_status: _PostStatus | None = Field(default=None, alias="postStatus")
    post_category: _PostCategory | None = Field(default=None, alias="postCategory")

    @field_validator("slug", "title", "content", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("upvotes", "pinned", mode="before")
    @classmethod
    def _null_number(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("date", "last_modified")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def decode_envelope(body: bytes, provider: str = SOURCE) -> HiveEnvelope:
    try:
        return HiveEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedUpstreamPayload(provider, f"undecodable submission page: {exc}") from exc


def parse_instant(value: str | None) -> datetime | None:
    """ISO-8601 string to a UTC datetime; blanks and garbage give None."""

    if not value or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def map_submission(raw: Any, *, url_prefix: str = DEFAULT_ITEM_URL_PREFIX) -> CanonicalItem:
    try:
        submission = HiveSubmission.model_validate(raw)
    except ValidationError as exc:
        raise PartialMapFailure(str(exc)) from exc
    status = submission.post_status.name if submission.post_status else ""
    category = None
    if submission.post_category:
        category = submission.post_category.name.get("en") or None
    return CanonicalItem(
        id=submission.id,
        source=SOURCE,
        title=submission.title,
        status=status,
        provider_status=status,
        slug=submission.slug,
        category=category,
        created_at=submission.date,
        updated_at=submission.last_modified,
        target_at=parse_instant(submission.eta),
        url=f"{url_prefix}{submission.slug}" if submission.slug else "",
        upvotes=submission.upvotes,
        pinned=submission.pinned,
        content_html=submission.content,
        content_text=strip_html(submission.content),
    )


def map_hive_page(
    envelope: HiveEnvelope, *, url_prefix: str = DEFAULT_ITEM_URL_PREFIX
) -> list[CanonicalItem]:
    """Map every submission on a page, skipping the ones that do not decode."""

    items: list[CanonicalItem] = []
    for index, raw in enumerate(envelope.results):
        try:
            items.append(map_submission(raw, url_prefix=url_prefix))
        except PartialMapFailure as exc:
            record_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                "record_skipped",
                source=SOURCE,
                page=envelope.page,
                index=index,
                record_id=record_id,
                error=str(exc).splitlines()[0],
            )
    return items


__all__ = [
    "DEFAULT_ITEM_URL_PREFIX",
    "HiveEnvelope",
    "HiveSubmission",
    "decode_envelope",
    "map_hive_page",
    "map_submission",
    "parse_instant",
]
