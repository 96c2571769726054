"""Named executors: one bounded fan-out pool per provider plus a shared pool."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock
from typing import Dict

THREAD_PREFIX = "roadmap"


class ThreadPoolManager:
    """Hand out executors by provider name.

    A provider pool is sized on first request and keeps that size; the shared
    pool (``get()`` with no name) runs probes and scheduler work.
    """

    def __init__(self, default_workers: int = 4) -> None:
        self.default_workers = max(1, default_workers)
        self._shared = ThreadPoolExecutor(
            max_workers=self.default_workers, thread_name_prefix=THREAD_PREFIX
        )
        self._pools: Dict[str, ThreadPoolExecutor] = {}
        self._sizes: Dict[str, int] = {}
        self._lock = Lock()

    def get(self, provider: str | None = None, max_workers: int | None = None) -> ThreadPoolExecutor:
        if provider is None:
            return self._shared
        with self._lock:
            pool = self._pools.get(provider)
            if pool is None:
                size = max(1, max_workers or self.default_workers)
                pool = ThreadPoolExecutor(
                    max_workers=size, thread_name_prefix=f"{THREAD_PREFIX}-{provider}"
                )
                self._pools[provider] = pool
                self._sizes[provider] = size
            return pool

    def size(self, provider: str | None = None) -> int:
        if provider is None:
            return self.default_workers
        with self._lock:
            return self._sizes[provider]

    def shutdown(self, wait: bool = False) -> None:
        """Stop every pool; queued work that has not started is dropped."""

        with self._lock:
            pools = [self._shared, *self._pools.values()]
            self._pools.clear()
            self._sizes.clear()
        for pool in pools:
            pool.shutdown(wait=wait, cancel_futures=True)


__all__ = ["ThreadPoolManager"]
