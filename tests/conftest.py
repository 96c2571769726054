"""Shared fixtures: clocks, payload builders, mock transports and config."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from roadmap_tracker.config import ConfigLocator, ConfigRepository
from roadmap_tracker.logging_conf import configure_logging
from roadmap_tracker.models import CanonicalItem

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def tracker_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    """Keep logs and config of every test inside one temporary home."""

    home = tmp_path_factory.mktemp("home")
    with pytest.MonkeyPatch.context() as patch:
        patch.setenv("ROADMAP_TRACKER_HOME", str(home))
        patch.delenv("NOTION_COOKIE", raising=False)
        configure_logging()
        yield home


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UtcClock:
    """Wall clock returning aware datetimes, advanced by hand."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def utc_clock() -> UtcClock:
    return UtcClock()


@pytest.fixture
def make_item() -> Callable[..., CanonicalItem]:
    def _builder(**overrides: Any) -> CanonicalItem:
        base: dict[str, Any] = {
            "id": "item-1",
            "source": "hive",
            "title": "Example",
            "status": "In Progress",
            "provider_status": "In Progress",
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
            "url": "https://example.com/item-1",
        }
        base.update(overrides)
        return CanonicalItem(**base)

    return _builder


# ----------------------------------------------------------------------
# Voting board payloads
# ----------------------------------------------------------------------
def hive_submission(**overrides: Any) -> dict[str, Any]:
    base: dict[str, Any] = {
        "id": "sub-1",
        "slug": "better-lobbies",
        "title": "Better lobbies",
        "content": "<p>Faster &amp; nicer</p>",
        "upvotes": 12,
        "date": "2024-04-01T10:00:00Z",
        "lastModified": "2024-04-20T08:30:00Z",
        "pinned": False,
        "eta": None,
        "postStatus": {"name": "In Progress"},
        "postCategory": {"name": {"en": "Lobby"}},
    }
    base.update(overrides)
    return base


def hive_page(
    results: list[dict[str, Any]], *, page: int = 1, total_pages: int = 1, limit: int = 10
) -> bytes:
    return json.dumps(
        {
            "results": results,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
            "totalResults": total_pages * len(results),
        }
    ).encode()


@pytest.fixture
def hive_payloads() -> tuple[Callable[..., dict], Callable[..., bytes]]:
    return hive_submission, hive_page


# ----------------------------------------------------------------------
# Wiki collection payloads
# ----------------------------------------------------------------------
def notion_block(
    status: str | None = "In Progress",
    *,
    title: str = "Skyblock update",
    created_ms: int = 1_714_557_600_000,
    edited_ms: int = 1_714_644_000_000,
    released: str | None = None,
    parent_table: str = "collection",
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    properties: dict[str, Any] = {"title": [[title]]}
    if status is not None:
        properties["3E6J"] = [[status]]
    if released is not None:
        properties["?igY"] = [["‣", [["d", {"type": "date", "start_date": released}]]]]
    properties.update(extra or {})
    return {
        "value": {
            "parent_table": parent_table,
            "properties": properties,
            "created_time": created_ms,
            "last_edited_time": edited_ms,
        }
    }


def notion_payload(blocks: dict[str, dict[str, Any]]) -> bytes:
    return json.dumps({"recordMap": {"block": blocks}}).encode()


@pytest.fixture
def notion_payloads() -> tuple[Callable[..., dict], Callable[..., bytes]]:
    return notion_block, notion_payload


# ----------------------------------------------------------------------
# HTTP
# ----------------------------------------------------------------------
@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    clients: list[httpx.Client] = []

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _factory
    for client in clients:
        client.close()


@pytest.fixture
def temp_config_repository(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("ROADMAP_TRACKER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
