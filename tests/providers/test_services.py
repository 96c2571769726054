from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

import httpx
import pytest

from roadmap_tracker.config import CubecraftSettings, HiveSettings
from roadmap_tracker.engine import ChangeTracker, Fetcher, ResponseCache
from roadmap_tracker.errors import InvalidQuery, MalformedUpstreamPayload, UpstreamUnavailable
from roadmap_tracker.providers import CubecraftClient, HiveClient, RoadmapService

IN_PROGRESS_ID = "673d43b2b479f2dff6f8b96e"


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=False, cancel_futures=True)


@pytest.fixture
def hive_service(mock_client, executor, utc_clock):
    def _build(
        handler: Callable[[httpx.Request], httpx.Response], **overrides
    ) -> RoadmapService:
        settings = HiveSettings(max_concurrency=2, page_size=2, **overrides)
        fetcher = Fetcher("hive", client=mock_client(handler), cache_ttl=settings.cache_ttl)
        client = HiveClient(settings, fetcher, executor)
        return RoadmapService(client, ChangeTracker(clock=utc_clock), page_size=settings.page_size)

    return _build


@pytest.fixture
def cube_service(mock_client, utc_clock):
    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> RoadmapService:
        settings = CubecraftSettings(page_size=10)
        fetcher = Fetcher("cubecraft", client=mock_client(handler))
        client = CubecraftClient(settings, fetcher, cache=ResponseCache())
        return RoadmapService(client, ChangeTracker(clock=utc_clock), page_size=settings.page_size)

    return _build


# ----------------------------------------------------------------------
# Voting board
# ----------------------------------------------------------------------
def test_hive_fetches_every_page_and_repaginates(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        number = int(request.url.params["page"])
        results = [
            submission(id=f"p{number}-a", upvotes=30 - number * 2),
            submission(id=f"p{number}-b", upvotes=29 - number * 2),
        ]
        return httpx.Response(200, content=page(results, page=number, total_pages=3))

    service = hive_service(handler)
    pages = service.get_all(service.build_query("In-Progress"))

    params = requests[0].url.params
    assert params["s"] == IN_PROGRESS_ID
    assert params["sortBy"] == "upvotes:desc"
    assert params["inReview"] == "false"
    assert params["includePinned"] == "true"
    assert sorted(int(r.url.params["page"]) for r in requests) == [1, 2, 3]

    assert len(pages) == 3
    assert [item.id for p in pages for item in p.items] == [
        "p1-a",
        "p1-b",
        "p2-a",
        "p2-b",
        "p3-a",
        "p3-b",
    ]
    assert pages[0].meta.total_results == 6


def test_hive_page_two_failure_returns_no_items(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads

    def handler(request: httpx.Request) -> httpx.Response:
        number = int(request.url.params["page"])
        if number == 2:
            raise httpx.ConnectError("network down", request=request)
        return httpx.Response(
            200, content=page([submission(id=f"p{number}")], page=number, total_pages=3)
        )

    service = hive_service(handler)
    with pytest.raises(UpstreamUnavailable):
        service.get_page(service.build_query("released"))
    assert len(service.tracker) == 0
    assert service.updates() == []


def test_unknown_column_is_rejected_before_network(hive_service) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    service = hive_service(handler)
    with pytest.raises(InvalidQuery):
        service.build_query("backlog")
    with pytest.raises(InvalidQuery):
        service.build_query("released", page=0)
    with pytest.raises(InvalidQuery):
        service.build_query("released", sort="popularity")
    assert calls == []


def test_hive_sort_and_flags_go_upstream(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads
    seen: list[httpx.QueryParams] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        return httpx.Response(200, content=page([submission()]))

    service = hive_service(handler)
    query = service.build_query(
        "coming-next", sort="date:asc", in_review=True, include_pinned=False
    )
    service.get_page(query)
    assert seen[0]["sortBy"] == "date:asc"
    assert seen[0]["inReview"] == "true"
    assert seen[0]["includePinned"] == "false"


def test_hive_two_fetch_transition_scenario(hive_service, hive_payloads, utc_clock) -> None:
    submission, page = hive_payloads
    status = {"value": "In Progress"}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, content=page([submission(id="X", postStatus={"name": status["value"]})])
        )

    service = hive_service(handler)
    query = service.build_query("released", bypass_cache=True)
    service.get_page(query)
    status["value"] = "Released"
    utc_clock.advance(minutes=1)
    service.get_page(query)
    utc_clock.advance(minutes=1)
    service.get_page(query)

    changes = service.updates()
    assert len(changes) == 1
    assert changes[0].as_dict()["from"] == "In Progress"
    assert changes[0].as_dict()["to"] == "Released"
    assert changes[0].item.id == "X"


def test_hive_cached_pages_skip_network(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=page([submission()]))

    service = hive_service(handler)
    service.get_page(service.build_query("released"))
    service.get_page(service.build_query("released"))
    assert len(calls) == 1
    service.get_page(service.build_query("released", bypass_cache=True))
    assert len(calls) == 2


def test_hive_raw_page_and_columns(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads
    body = page([submission()])
    service = hive_service(lambda request: httpx.Response(200, content=body))
    assert service.get_raw(service.build_query("released", page=1)) == body
    assert service.columns()["in-progress"] == IN_PROGRESS_ID
    assert set(service.columns()) == {"in-progress", "coming-next", "released"}


def test_hive_undecodable_page_is_malformed(hive_service) -> None:
    service = hive_service(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
    with pytest.raises(MalformedUpstreamPayload):
        service.get_all(service.build_query("released"))


def test_hive_probe(hive_service, hive_payloads) -> None:
    submission, page = hive_payloads
    service = hive_service(
        lambda request: httpx.Response(200, content=page([submission(), submission(id="2")]))
    )
    result = service.probe()
    assert result.ok
    assert result.status_code == 200
    assert result.items == 2
    assert set(result.as_dict()) == {"ok", "status", "latencyMs", "items"}

    failing = hive_service(lambda request: httpx.Response(502, content=b"bad gateway"))
    result = failing.probe()
    assert not result.ok
    assert result.status_code == 502
    assert result.error


# ----------------------------------------------------------------------
# Wiki collection
# ----------------------------------------------------------------------
def _collection_body(notion_payloads) -> bytes:
    block, payload = notion_payloads
    return payload(
        {
            "r1": block("Released", title="Alpha", released="2024-03-01"),
            "r2": block("Released", title="beta", released="2024-04-01"),
            "t1": block("Testing", title="Gamma", edited_ms=1_714_000_000_000),
            "t2": block("Testing", title="delta", edited_ms=1_715_000_000_000),
            "i1": block("In Progress", title="Epsilon"),
            "x1": block("Scrapped", title="Zeta"),
        }
    )


def test_cubecraft_filters_and_sorts_by_column_default(cube_service, notion_payloads) -> None:
    body = _collection_body(notion_payloads)
    service = cube_service(lambda request: httpx.Response(200, content=body))

    released = service.get_page(service.build_query("released"))
    assert [item.id for item in released.items] == ["r2", "r1"]
    assert released.meta.total_results == 2

    coming = service.get_page(service.build_query("coming-next"))
    assert [item.id for item in coming.items] == ["t2", "t1"]
    assert {item.status for item in coming.items} == {"Coming Next..."}

    by_title = service.get_page(service.build_query("released", sort="title:desc"))
    assert [item.title for item in by_title.items] == ["beta", "Alpha"]


def test_cubecraft_caches_decoded_items(cube_service, notion_payloads) -> None:
    body = _collection_body(notion_payloads)
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=body)

    service = cube_service(handler)
    service.get_page(service.build_query("released"))
    service.get_page(service.build_query("in-progress"))
    assert len(calls) == 1
    service.get_page(service.build_query("released", bypass_cache=True))
    assert len(calls) == 2


def test_cubecraft_request_shape(cube_service, notion_payloads, monkeypatch) -> None:
    monkeypatch.setenv("NOTION_COOKIE", "token_v2=secret")
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, content=notion_payloads[1]({}))

    service = cube_service(handler)
    page = service.get_page(service.build_query("released"))
    request = seen["request"]
    body = json.loads(request.content)

    assert request.method == "POST"
    assert request.url.params["src"] == "initial_load"
    assert request.headers["cookie"] == "token_v2=secret"
    assert request.headers["x-notion-space-id"] == "2a7d9973-2a91-430b-9d0f-520163f17777"
    assert request.headers["notion-audit-log-platform"] == "web"
    assert body["source"]["id"] == "d14e867c-526a-4627-ad4f-1f56fdee77d6"
    assert body["loader"]["sort"] == [{"property": "?igY", "direction": "descending"}]
    groups = body["loader"]["reducers"]["board_columns"]["groupSortPreference"]
    assert [g["value"].get("value") for g in groups if not g["hidden"]] == [
        "Information",
        "In Progress",
        "Testing",
        "Released",
    ]
    assert page.items == ()
    assert page.meta.total_pages == 1


def test_cubecraft_transition_detected_from_any_column(
    cube_service, notion_payloads, utc_clock
) -> None:
    block, payload = notion_payloads
    status = {"value": "Testing"}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=payload({"row": block(status["value"])}))

    service = cube_service(handler)
    service.get_page(service.build_query("released", bypass_cache=True))
    status["value"] = "Released"
    utc_clock.advance(minutes=1)
    service.get_page(service.build_query("in-progress", bypass_cache=True))

    changes = service.updates()
    assert [(c.previous, c.current) for c in changes] == [("Coming Next...", "Released")]


def test_cubecraft_probe_counts_rows(cube_service, notion_payloads) -> None:
    body = _collection_body(notion_payloads)
    service = cube_service(lambda request: httpx.Response(200, content=body))
    result = service.probe()
    assert result.ok and result.items == 6

    denied = cube_service(lambda request: httpx.Response(401, content=b'{"recordMap": {}}'))
    result = denied.probe()
    assert not result.ok
    assert result.status_code == 401
    assert "401" in result.error


def test_cubecraft_keeps_injected_items_cache(mock_client, manual_clock, notion_payloads) -> None:
    block, payload = notion_payloads
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=payload({"row": block("Released")}))

    cache = ResponseCache(clock=manual_clock)
    settings = CubecraftSettings(cache_ttl=60)
    client = CubecraftClient(settings, Fetcher("cubecraft", client=mock_client(handler)), cache=cache)
    assert client.cache is cache

    service = RoadmapService(client, ChangeTracker())
    service.get_page(service.build_query("released"))
    service.get_page(service.build_query("released"))
    assert len(calls) == 1
    manual_clock.advance(61)
    service.get_page(service.build_query("released"))
    assert len(calls) == 2
