"""Single upstream request with caching, size capping and deadlines."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict

import httpx
import structlog

from ..errors import FetchCancelled, MalformedUpstreamPayload, UpstreamUnavailable
from .cache import ResponseCache
from .cancel import CancelToken

ERROR_BODY_LIMIT = 2 << 20


@dataclass(slots=True)
class FetchRequest:
    """Input for the fetcher."""

    url: str
    method: str = "GET"
    params: dict[str, str] | None = None
    json: Any = None
    headers: dict[str, str] | None = None
    bypass_cache: bool = False

    @property
    def cache_key(self) -> str:
        return f"{self.method} {httpx.URL(self.url, params=self.params)}"


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    from_cache: bool = False


class Fetcher:
    """Execute requests against one provider.

    Successful GET bodies are cached by full URL for ``cache_ttl`` seconds
    unless the request bypasses the cache. Bodies larger than
    ``max_response_bytes`` are rejected while streaming.
    """

    def __init__(
        self,
        provider: str,
        *,
        client: httpx.Client | None = None,
        cache: ResponseCache | None = None,
        cache_ttl: float = 0.0,
        timeout: float = 15.0,
        max_response_bytes: int = 16 << 20,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else ResponseCache()
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes
        self.logger = logger or structlog.get_logger("roadmap_tracker.fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch(self, request: FetchRequest, cancel: CancelToken | None = None) -> FetchResponse:
        cancel = cancel or CancelToken()
        use_cache = not request.bypass_cache and self.cache_ttl > 0
        key = request.cache_key
        if use_cache:
            cached, hit = self.cache.get(key)
            if hit:
                self.logger.debug("cache_hit", provider=self.provider, key=key)
                return replace(cached, from_cache=True)
        cancel.raise_if_cancelled()

        started = time.perf_counter()
        response = self._send(request, cancel)
        self.logger.debug(
            "upstream_response",
            provider=self.provider,
            url=response.url,
            status=response.status_code,
            bytes=len(response.body),
            latency_ms=int((time.perf_counter() - started) * 1000),
        )
        if use_cache:
            self.cache.put(key, response, self.cache_ttl)
        return response

    def probe(self, request: FetchRequest, cancel: CancelToken | None = None) -> FetchResponse:
        """Send ``request`` and return the response whatever its status."""

        return self._send(request, cancel or CancelToken(), raise_for_status=False)

    # ------------------------------------------------------------------
    def _send(
        self, request: FetchRequest, cancel: CancelToken, *, raise_for_status: bool = True
    ) -> FetchResponse:
        timeout = cancel.bound_timeout(self.timeout)
        headers = {"Accept": "application/json"}
        headers.update(request.headers or {})
        try:
            with self._client.stream(
                request.method,
                request.url,
                params=request.params,
                json=request.json,
                headers=headers,
                timeout=timeout,
            ) as response:
                if self._is_failure(response) and raise_for_status:
                    detail = self._read_capped(response, ERROR_BODY_LIMIT, truncate=True)
                    raise UpstreamUnavailable(
                        self.provider,
                        f"upstream status {response.status_code}: "
                        f"{detail[:200].decode('utf-8', 'replace')}",
                        status_code=response.status_code,
                    )
                body = self._read_capped(response, self.max_response_bytes)
                return FetchResponse(
                    url=str(response.url),
                    status_code=response.status_code,
                    body=body,
                    headers=dict(response.headers),
                )
        except httpx.HTTPError as exc:
            if cancel.cancelled:
                raise FetchCancelled(f"{self.provider}: fetch cancelled: {request.url}") from exc
            self.logger.warning(
                "fetch_error", provider=self.provider, url=request.url, error=str(exc)
            )
            raise UpstreamUnavailable(self.provider, f"request failed: {exc}") from exc

    def _read_capped(self, response: httpx.Response, limit: int, *, truncate: bool = False) -> bytes:
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            size += len(chunk)
            if size > limit:
                if truncate:
                    chunks.append(chunk[: limit - (size - len(chunk))])
                    break
                raise MalformedUpstreamPayload(
                    self.provider, f"response exceeds {limit} bytes: {response.url}"
                )
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _is_failure(response: Any) -> bool:
        return getattr(response, "status_code", 0) >= 400


__all__ = ["Fetcher", "FetchRequest", "FetchResponse"]
