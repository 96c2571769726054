from __future__ import annotations

from apscheduler.triggers.interval import IntervalTrigger

from roadmap_tracker.config import WatchSettings
from roadmap_tracker.scheduler import APSchedulerAdapter


class StubScheduler:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def add_job(self, callback, trigger, id, args, **kwargs):  # noqa: ANN001
        self.calls.append({"id": id, "args": args, "trigger": trigger, **kwargs})

    def get_jobs(self):
        return []

    def start(self):
        self.calls.append({"event": "started"})

    def shutdown(self, wait=False):  # noqa: ARG002
        self.calls.append({"event": "shutdown"})

    def remove_job(self, job_id):  # noqa: ANN001
        if job_id != "refresh::hive":
            raise KeyError(job_id)
        self.calls.append({"event": "remove", "id": job_id})


def test_build_trigger_uses_interval() -> None:
    trigger = APSchedulerAdapter().build_trigger(WatchSettings(interval_seconds=45))
    assert isinstance(trigger, IntervalTrigger)
    assert trigger.interval.total_seconds() == 45


def test_schedule_refresh_registers_one_job_per_provider() -> None:
    stub = StubScheduler()
    adapter = APSchedulerAdapter(scheduler=stub)  # type: ignore[arg-type]
    settings = WatchSettings(interval_seconds=60, columns=["released"])

    ids = adapter.schedule_refresh(["hive", "cubecraft"], settings, lambda p, c: None)
    assert ids == ["refresh::hive", "refresh::cubecraft"]
    assert [call["args"] for call in stub.calls] == [["hive", ["released"]], ["cubecraft", ["released"]]]
    assert all(call["replace_existing"] and call["max_instances"] == 1 for call in stub.calls)

    adapter.start()
    adapter.start()
    adapter.remove_provider("hive")
    adapter.remove_provider("missing")
    adapter.shutdown()
    events = [call.get("event") for call in stub.calls if "event" in call]
    assert events == ["started", "remove", "shutdown"]


def test_real_scheduler_lists_jobs() -> None:
    adapter = APSchedulerAdapter()
    adapter.schedule_refresh(["hive"], WatchSettings(), lambda p, c: None)
    adapter.start()
    try:
        jobs = adapter.list_jobs()
        assert [job["id"] for job in jobs] == ["refresh::hive"]
        assert jobs[0]["next_run_time"] is not None
    finally:
        adapter.shutdown()
