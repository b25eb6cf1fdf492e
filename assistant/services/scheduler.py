import threading
from typing import Callable, Optional

from assistant.logging_config import get_logger

logger = get_logger("scheduler")


class PeriodicTask:
    """Runs `func` every `interval_seconds` on a daemon thread until stopped."""

    def __init__(self, name: str, interval_seconds: float, func: Callable[[], object]):
        self.name = name
        self.interval_seconds = max(interval_seconds, 0.01)
        self.func = func
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=f"periodic-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"{self.name} started (every {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info(f"{self.name} stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.func()
            except Exception as exc:
                logger.error(
                    f"{self.name} run failed",
                    extra={"context": {"error": str(exc)}},
                    exc_info=True,
                )
