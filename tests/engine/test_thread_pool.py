from __future__ import annotations

import threading

from roadmap_tracker.engine import ThreadPoolManager


def test_thread_pool_manager_isolates_executors() -> None:
    manager = ThreadPoolManager(default_workers=2)
    assert manager.get() is manager.get()

    pool_hive = manager.get("hive", max_workers=4)
    assert manager.get("hive", max_workers=9) is pool_hive
    assert manager.size("hive") == 4

    pool_cube = manager.get("cubecraft")
    assert pool_cube is not pool_hive
    assert manager.size("cubecraft") == 2
    assert manager.size() == 2

    name = pool_hive.submit(lambda: threading.current_thread().name).result(timeout=5)
    assert name.startswith("roadmap-hive")
    manager.shutdown(wait=True)


def test_non_positive_sizes_fall_back_to_one_worker() -> None:
    manager = ThreadPoolManager(default_workers=0)
    manager.get("hive", max_workers=0)
    assert manager.size() == 1
    assert manager.size("hive") == 1
    manager.shutdown()
