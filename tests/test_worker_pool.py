import threading
from unittest.mock import Mock

import pytest

from assistant.services.scheduler import PeriodicTask
from assistant.services.worker_pool import BoundedExecutor, WorkerPoolSaturatedError


class TestBoundedExecutor:
    def test_runs_work(self):
        pool = BoundedExecutor(max_workers=2, max_pending=2)
        try:
            assert pool.submit(lambda x: x * 2, 21).result(timeout=2) == 42
        finally:
            pool.shutdown()

    def test_rejects_when_saturated(self):
        release = threading.Event()
        pool = BoundedExecutor(max_workers=1, max_pending=1, submit_timeout=0.05)
        try:
            pool.submit(release.wait, 5)
            pool.submit(release.wait, 5)
            assert pool.in_flight == 2

            with pytest.raises(WorkerPoolSaturatedError):
                pool.submit(release.wait, 5)
        finally:
            release.set()
            pool.shutdown()

    def test_slot_released_after_failure(self):
        pool = BoundedExecutor(max_workers=1, max_pending=0, submit_timeout=1.0)
        try:
            future = pool.submit(Mock(side_effect=RuntimeError("boom")))
            with pytest.raises(RuntimeError):
                future.result(timeout=2)
            assert pool.submit(lambda: "ok").result(timeout=2) == "ok"
        finally:
            pool.shutdown()


class TestPeriodicTask:
    def test_runs_until_stopped(self):
        ran = threading.Event()
        task = PeriodicTask("test", 0.01, ran.set)

        task.start()
        assert ran.wait(timeout=2)
        task.stop()

        assert task.running is False

    def test_errors_do_not_stop_the_loop(self):
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run fails")
            done.set()

        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        try:
            assert done.wait(timeout=2)
        finally:
            task.stop()
