"""Bounded-concurrency retrieval of every page of one upstream query."""

from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, Executor, wait
from queue import Empty, SimpleQueue
from threading import Event, Lock
from typing import Callable, Generic, TypeVar

import structlog

from ..errors import FetchCancelled, MalformedUpstreamPayload
from .cancel import CancelToken
from .fetcher import FetchRequest, Fetcher

T = TypeVar("T")

DEFAULT_MAX_PAGES = 1000


class PageFetcher(Generic[T]):
    """Fetch page 1, read the declared page count, then fan out over the rest.

    Pages 2..N are pulled from a shared queue by at most ``max_concurrency``
    workers running on ``executor``. Results are stored by page number, so the
    returned list is in page order whatever order the workers finish in. The
    first worker error stops the others from taking new pages and is raised
    once every worker has returned; nothing partial is returned.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        executor: Executor,
        *,
        build_request: Callable[[int], FetchRequest],
        decode: Callable[[bytes], T],
        total_pages: Callable[[T], int],
        max_concurrency: int = 2,
        max_pages: int = DEFAULT_MAX_PAGES,
        poll_interval: float = 0.05,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.executor = executor
        self.build_request = build_request
        self.decode = decode
        self.total_pages = total_pages
        self.max_concurrency = max(1, max_concurrency)
        self.max_pages = max(1, max_pages)
        self.poll_interval = poll_interval
        self.logger = logger or structlog.get_logger("roadmap_tracker.pages")

    def fetch_page(self, page: int, cancel: CancelToken) -> T:
        response = self.fetcher.fetch(self.build_request(page), cancel)
        return self.decode(response.body)

    def fetch_all(self, cancel: CancelToken | None = None) -> list[T]:
        cancel = cancel or CancelToken()
        first = self.fetch_page(1, cancel)
        total = self.total_pages(first)
        if total > self.max_pages:
            raise MalformedUpstreamPayload(
                self.fetcher.provider,
                f"declared page count {total} exceeds the limit of {self.max_pages}",
            )
        if total <= 1:
            return [first]

        results: list[T | None] = [None] * total
        results[0] = first
        queue: SimpleQueue[int] = SimpleQueue()
        for page in range(2, total + 1):
            queue.put(page)
        stop = Event()
        errors: list[Exception] = []
        errors_lock = Lock()

        def worker() -> None:
            while not stop.is_set() and not cancel.cancelled:
                try:
                    page = queue.get_nowait()
                except Empty:
                    return
                try:
                    results[page - 1] = self.fetch_page(page, cancel)
                except Exception as exc:  # noqa: BLE001
                    with errors_lock:
                        if not errors:
                            errors.append(exc)
                    stop.set()
                    self.logger.warning(
                        "page_fetch_failed",
                        provider=self.fetcher.provider,
                        page=page,
                        error=str(exc),
                    )
                    return

        workers = min(self.max_concurrency, total - 1)
        pending = {self.executor.submit(worker) for _ in range(workers)}
        while pending:
            _, pending = wait(pending, timeout=self.poll_interval, return_when=FIRST_EXCEPTION)
            if cancel.cancelled:
                stop.set()
                self.logger.info(
                    "fan_out_cancelled",
                    provider=self.fetcher.provider,
                    abandoned_workers=len(pending),
                )
                raise FetchCancelled(f"{self.fetcher.provider}: fetch cancelled after page 1")

        if errors:
            raise errors[0]
        missing = [index + 1 for index, value in enumerate(results) if value is None]
        if missing:
            raise FetchCancelled(f"{self.fetcher.provider}: pages {missing} were not fetched")
        self.logger.debug("fan_out_complete", provider=self.fetcher.provider, pages=total)
        return results  # type: ignore[return-value]


__all__ = ["DEFAULT_MAX_PAGES", "PageFetcher"]
