"""Mapping of a wiki collection query into canonical items.

Collection rows arrive as blocks whose properties are nested lists of text
runs with optional annotations::

    [["In Progress"]]                                    # text
    [["‣", [["d", {"type": "date", "start_date": "2024-05-01"}]]]]  # date
    [["‣", [["u", "9a1c..."]]]]                          # user reference

Every logical field has one fixed property key and one kind, listed in
``ROW_SCHEMA``. Decoding is a single step per kind:

* text: the first text run is the display value;
* date: the ``start_date`` of the first date annotation on the first run;
* reference: the id of the first user/page annotation on the first run,
  falling back to the run's text.

Only ``title`` and ``status`` are required: either one present with the
wrong shape makes the row malformed and the row is skipped. Any other field
that cannot be decoded is left empty, the same as an absent property.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedUpstreamPayload, PartialMapFailure
from ..models import CanonicalItem

SOURCE = "cubecraft"

logger = structlog.get_logger("roadmap_tracker.mapping.notion")


class PropertyKind(str, Enum):
    TEXT = "text"
    DATE = "date"
    REFERENCE = "reference"


@dataclass(frozen=True, slots=True)
class TextValue:
    text: str


@dataclass(frozen=True, slots=True)
class DateValue:
    start: date


@dataclass(frozen=True, slots=True)
class ReferenceValue:
    ref_id: str
    label: str = ""


PropertyValue = Union[TextValue, DateValue, ReferenceValue]


@dataclass(frozen=True, slots=True)
class PropertySpec:
    key: str
    kind: PropertyKind
    required: bool = False


ROW_SCHEMA: dict[str, PropertySpec] = {
    "title": PropertySpec("title", PropertyKind.TEXT, required=True),
    "status": PropertySpec("3E6J", PropertyKind.TEXT, required=True),
    "network": PropertySpec("@@W>", PropertyKind.TEXT),
    "category": PropertySpec("K:rY", PropertyKind.TEXT),
    "project_lead": PropertySpec("\\wxR", PropertyKind.REFERENCE),
    "release_post": PropertySpec("^NHI", PropertyKind.TEXT),
    "released_at": PropertySpec("?igY", PropertyKind.DATE),
}

STATUS_LABELS = {
    "In Progress": "In Progress",
    "Testing": "Coming Next...",
    "Released": "Released",
    "Information": "Information",
}

_REFERENCE_TAGS = ("u", "p")


class _RecordMap(BaseModel):
    block: dict[str, Any] = Field(default_factory=dict)


class CollectionEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    record_map: _RecordMap = Field(alias="recordMap")


class _BlockValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    parent_table: str = ""
    properties: dict[str, Any] = Field(default_factory=dict)
    created_time: int
    last_edited_time: int


class _Block(BaseModel):
    value: _BlockValue


def decode_collection(body: bytes, provider: str = SOURCE) -> CollectionEnvelope:
    try:
        return CollectionEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise MalformedUpstreamPayload(provider, f"undecodable collection payload: {exc}") from exc


# ----------------------------------------------------------------------
# Property decoding
# ----------------------------------------------------------------------
def _first_run(raw: Any) -> list[Any]:
    if not isinstance(raw, list) or not raw:
        raise PartialMapFailure(f"property is not a non-empty run list: {raw!r}")
    run = raw[0]
    if not isinstance(run, list) or not run:
        raise PartialMapFailure(f"text run is not a non-empty list: {run!r}")
    return run


def _run_text(run: list[Any]) -> str:
    text = run[0]
    if not isinstance(text, str):
        raise PartialMapFailure(f"text run does not start with a string: {run!r}")
    return text


def _annotations(run: list[Any]) -> list[list[Any]]:
    if len(run) < 2:
        return []
    annotations = run[1]
    if not isinstance(annotations, list):
        raise PartialMapFailure(f"run annotations are not a list: {annotations!r}")
    return [a for a in annotations if isinstance(a, list) and a]


def decode_property(kind: PropertyKind, raw: Any) -> PropertyValue:
    run = _first_run(raw)
    if kind is PropertyKind.TEXT:
        return TextValue(_run_text(run))
    if kind is PropertyKind.DATE:
        for annotation in _annotations(run):
            if len(annotation) > 1 and isinstance(annotation[1], Mapping):
                start = annotation[1].get("start_date")
                if isinstance(start, str):
                    try:
                        return DateValue(date.fromisoformat(start))
                    except ValueError as exc:
                        raise PartialMapFailure(f"bad start_date {start!r}") from exc
        raise PartialMapFailure(f"no date annotation in {run!r}")
    if kind is PropertyKind.REFERENCE:
        label = _run_text(run)
        for annotation in _annotations(run):
            if annotation[0] in _REFERENCE_TAGS and len(annotation) > 1:
                if isinstance(annotation[1], str) and annotation[1]:
                    return ReferenceValue(ref_id=annotation[1], label=label)
        return ReferenceValue(ref_id=label, label=label)
    raise PartialMapFailure(f"unknown property kind {kind!r}")


def decode_row(properties: Mapping[str, Any], record_id: str = "") -> dict[str, PropertyValue]:
    """Decode every schema field present in ``properties``.

    A malformed required field raises ``PartialMapFailure``; a malformed
    optional field is dropped.
    """

    decoded: dict[str, PropertyValue] = {}
    for name, spec in ROW_SCHEMA.items():
        if spec.key not in properties:
            continue
        try:
            decoded[name] = decode_property(spec.kind, properties[spec.key])
        except PartialMapFailure as exc:
            if spec.required:
                raise
            logger.debug(
                "field_dropped", source=SOURCE, record_id=record_id, field=name, error=str(exc)
            )
    return decoded


def _text(values: Mapping[str, PropertyValue], name: str) -> str | None:
    value = values.get(name)
    if isinstance(value, TextValue):
        return value.text
    if isinstance(value, ReferenceValue):
        return value.ref_id
    return None


def _from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


# ----------------------------------------------------------------------
# Rows
# ----------------------------------------------------------------------
def row_url(site_base_url: str, view_id: str, block_id: str) -> str:
    return f"{site_base_url}?v={view_id.replace('-', '')}&p={block_id.replace('-', '')}&pm=s"


def map_block(
    block_id: str, raw: Any, *, site_base_url: str, view_id: str
) -> CanonicalItem | None:
    """Map one block; ``None`` for blocks that are not collection rows."""

    try:
        block = _Block.model_validate(raw)
    except ValidationError as exc:
        raise PartialMapFailure(str(exc)) from exc
    if block.value.parent_table != "collection":
        return None
    values = decode_row(block.value.properties, block_id)
    native = _text(values, "status") or ""
    released = values.get("released_at")
    target_at = None
    if isinstance(released, DateValue):
        target_at = datetime(
            released.start.year, released.start.month, released.start.day, tzinfo=timezone.utc
        )
    try:
        return CanonicalItem(
            id=block_id,
            source=SOURCE,
            title=_text(values, "title") or "",
            status=STATUS_LABELS.get(native, native),
            provider_status=native,
            slug=block_id,
            category=_text(values, "category"),
            network=_text(values, "network"),
            project_lead=_text(values, "project_lead"),
            release_post=_text(values, "release_post"),
            created_at=_from_millis(block.value.created_time),
            updated_at=_from_millis(block.value.last_edited_time),
            target_at=target_at,
            url=row_url(site_base_url, view_id, block_id),
        )
    except (ValueError, OverflowError, OSError) as exc:
        raise PartialMapFailure(str(exc)) from exc


def map_collection(
    envelope: CollectionEnvelope, *, site_base_url: str, view_id: str
) -> list[CanonicalItem]:
    """Map every collection row in payload order, skipping malformed rows."""

    items: list[CanonicalItem] = []
    for block_id, raw in envelope.record_map.block.items():
        try:
            item = map_block(block_id, raw, site_base_url=site_base_url, view_id=view_id)
        except PartialMapFailure as exc:
            logger.warning(
                "record_skipped",
                source=SOURCE,
                record_id=block_id,
                error=str(exc).splitlines()[0],
            )
            continue
        if item is not None:
            items.append(item)
    return items


__all__ = [
    "CollectionEnvelope",
    "DateValue",
    "PropertyKind",
    "PropertySpec",
    "PropertyValue",
    "ROW_SCHEMA",
    "ReferenceValue",
    "STATUS_LABELS",
    "TextValue",
    "decode_collection",
    "decode_property",
    "decode_row",
    "map_block",
    "map_collection",
    "row_url",
]
