"""Wiring of providers, caches, trackers and pools into roadmap services."""

from __future__ import annotations

from concurrent.futures import Future, as_completed
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Mapping

import httpx
import structlog

from .config import ConfigRepository, GlobalConfig
from .engine import CancelToken, ChangeTracker, Fetcher, ResponseCache, ThreadPoolManager
from .errors import InvalidQuery, RoadmapError
from .logging_conf import provider_logger
from .providers import CubecraftClient, HiveClient, ProbeResult, RoadmapService


@dataclass(slots=True)
class RefreshSummary:
    """Outcome of refreshing several columns of one provider."""

    provider: str
    totals: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    changes: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


class Orchestrator:
    """Own one ``RoadmapService`` per enabled provider.

    Every service gets its own HTTP client, response cache and change tracker;
    the two providers share nothing except the thread pool manager.
    """

    def __init__(
        self,
        config_repository: ConfigRepository,
        thread_pool: ThreadPoolManager | None = None,
        *,
        http_clients: Mapping[str, httpx.Client] | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config_repository = config_repository
        self.global_config: GlobalConfig = config_repository.load_global_config()
        self.thread_pool = thread_pool or ThreadPoolManager(
            default_workers=self.global_config.thread_pool_workers
        )
        self.logger = logger or structlog.get_logger("roadmap_tracker.orchestrator")
        self._http_clients = dict(http_clients or {})
        self._services: dict[str, RoadmapService] = {}
        self._build_services()

    # ------------------------------------------------------------------
    def _tracker(self, provider: str) -> ChangeTracker:
        return ChangeTracker(
            timedelta(hours=self.global_config.retention_hours),
            index_limit=self.global_config.status_index_limit,
            logger=provider_logger(provider),
        )

    def _build_services(self) -> None:
        hive_cfg = self.global_config.hive
        if hive_cfg.enabled:
            log = provider_logger("hive")
            fetcher = Fetcher(
                "hive",
                client=self._http_clients.get("hive"),
                cache=ResponseCache(),
                cache_ttl=hive_cfg.cache_ttl,
                timeout=hive_cfg.request_timeout,
                max_response_bytes=hive_cfg.max_response_bytes,
                logger=log,
            )
            executor = self.thread_pool.get("hive", max_workers=hive_cfg.max_concurrency)
            client = HiveClient(hive_cfg, fetcher, executor, logger=log)
            self._services["hive"] = RoadmapService(
                client, self._tracker("hive"), page_size=hive_cfg.page_size, logger=log
            )

        cube_cfg = self.global_config.cubecraft
        if cube_cfg.enabled:
            log = provider_logger("cubecraft")
            fetcher = Fetcher(
                "cubecraft",
                client=self._http_clients.get("cubecraft"),
                timeout=cube_cfg.request_timeout,
                max_response_bytes=cube_cfg.max_response_bytes,
                logger=log,
            )
            client = CubecraftClient(cube_cfg, fetcher, cache=ResponseCache(), logger=log)
            self._services["cubecraft"] = RoadmapService(
                client, self._tracker("cubecraft"), page_size=cube_cfg.page_size, logger=log
            )

    # ------------------------------------------------------------------
    @property
    def providers(self) -> list[str]:
        return list(self._services)

    def service(self, name: str) -> RoadmapService:
        service = self._services.get(name.strip().lower())
        if service is None:
            choices = ", ".join(self._services) or "none enabled"
            raise InvalidQuery(f"unknown provider '{name}', expected one of [{choices}]")
        return service

    def health(self, timeout: float | None = None) -> dict[str, ProbeResult]:
        """Probe every provider concurrently on the shared pool."""

        futures: dict[Future, str] = {}
        for name, service in self._services.items():
            cancel = CancelToken(timeout)
            futures[self.thread_pool.get().submit(service.probe, cancel)] = name
        results: dict[str, ProbeResult] = {}
        for future in as_completed(futures):
            name = futures[future]
            results[name] = future.result()
            self.logger.info("health_probe", **{"provider": name, **results[name].as_dict()})
        return {name: results[name] for name in self._services if name in results}

    def refresh(
        self,
        provider: str,
        columns: Iterable[str] | None = None,
        *,
        bypass_cache: bool = True,
    ) -> RefreshSummary:
        """Fetch every page of ``columns`` so the change log stays current.

        Caches are skipped by default so each refresh compares against what the
        upstream reports now.
        """

        service = self.service(provider)
        summary = RefreshSummary(provider=service.name)
        wanted = list(columns) if columns is not None else list(self.global_config.watch.columns)
        before = len(service.updates())
        for column in wanted:
            try:
                query = service.build_query(column, bypass_cache=bypass_cache)
                pages = service.get_all(query)
            except RoadmapError as exc:
                summary.errors[column] = str(exc)
                self.logger.warning(
                    "refresh_failed", provider=service.name, column=column, error=str(exc)
                )
                continue
            summary.totals[column] = pages[0].meta.total_results
        summary.changes = max(0, len(service.updates()) - before)
        self.logger.info(
            "refresh_complete",
            provider=service.name,
            totals=summary.totals,
            failed=sorted(summary.errors),
            changes=summary.changes,
        )
        return summary

    def close(self) -> None:
        for service in self._services.values():
            service.close()
        self.thread_pool.shutdown()


__all__ = ["Orchestrator", "RefreshSummary"]
