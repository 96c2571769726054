"""APScheduler wrapper exposing the periodic provider refresh."""

from __future__ import annotations

from typing import Callable, Iterable

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import WatchSettings


def job_id(provider: str) -> str:
    return f"refresh::{provider}"


class APSchedulerAdapter:
    """Manage one interval refresh job per provider."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        *,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.scheduler = scheduler or BackgroundScheduler()
        self.logger = logger or structlog.get_logger("roadmap_tracker.scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def build_trigger(self, settings: WatchSettings) -> IntervalTrigger:
        return IntervalTrigger(seconds=settings.interval_seconds)

    def schedule_refresh(
        self,
        providers: Iterable[str],
        settings: WatchSettings,
        callback: Callable[[str, list[str]], object],
    ) -> list[str]:
        """Register ``callback(provider, columns)`` on an interval per provider."""

        ids: list[str] = []
        for provider in providers:
            identifier = job_id(provider)
            self.scheduler.add_job(
                callback,
                trigger=self.build_trigger(settings),
                id=identifier,
                args=[provider, list(settings.columns)],
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            ids.append(identifier)
            self.logger.info(
                "job_scheduled",
                provider=provider,
                interval_seconds=settings.interval_seconds,
                columns=list(settings.columns),
            )
        return ids

    def remove_provider(self, provider: str) -> None:
        try:
            self.scheduler.remove_job(job_id(provider))
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", provider=provider)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "job_id"]
