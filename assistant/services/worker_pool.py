import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from assistant.logging_config import get_logger

logger = get_logger("worker_pool")


class WorkerPoolSaturatedError(Exception):
    """Raised when no submission slot frees up within the submit timeout."""


class BoundedExecutor:
    """ThreadPoolExecutor with a cap on running + queued tasks.

    `submit` blocks for up to `submit_timeout` seconds waiting for a slot and
    raises WorkerPoolSaturatedError instead of queueing without bound.
    """

    def __init__(self, max_workers: int = 16, max_pending: int = 64, submit_timeout: float = 2.0, name: str = "worker"):
        self.name = name
        self.submit_timeout = submit_timeout
        self.capacity = max_workers + max_pending
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(self.capacity)
        self._in_flight = 0
        self._count_lock = threading.Lock()

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        if not self._slots.acquire(timeout=self.submit_timeout):
            logger.warning(
                f"{self.name} pool saturated",
                extra={"context": {"capacity": self.capacity, "timeout": self.submit_timeout}},
            )
            raise WorkerPoolSaturatedError(f"{self.name} pool saturated ({self.capacity} tasks in flight)")
        with self._count_lock:
            self._in_flight += 1
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except Exception:
            self._release()
            raise
        future.add_done_callback(lambda _: self._release())
        return future

    def _release(self) -> None:
        with self._count_lock:
            self._in_flight -= 1
        self._slots.release()

    @property
    def in_flight(self) -> int:
        with self._count_lock:
            return self._in_flight

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        logger.info(f"{self.name} pool shut down")
