"""Circuit breaker for the LLM dependency.

closed -> open after `failure_threshold` consecutive failures;
open -> half_open once `recovery_timeout_seconds` have passed;
half_open admits a single trial call and rejects everyone else until it reports back.
A successful trial closes the breaker, a failed one reopens it.
"""

import time
from threading import Lock
from typing import Callable, Literal

State = Literal["closed", "open", "half_open"]


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout_seconds = recovery_timeout_seconds
        self._clock = clock
        self._state: State = "closed"
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._trial_in_flight = False
        self._lock = Lock()

    @property
    def state(self) -> State:
        with self._lock:
            return self._state

    def allow_request(self) -> bool:
        """False while open, and in half_open while the trial call is outstanding."""
        with self._lock:
            if self._state == "open":
                if self._clock() - self._last_failure_time < self.recovery_timeout_seconds:
                    return False
                self._state = "half_open"
                self._trial_in_flight = False
            if self._state == "half_open":
                if self._trial_in_flight:
                    return False
                self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._trial_in_flight = False
            self._state = "closed"

    def record_failure(self) -> None:
        with self._lock:
            self._last_failure_time = self._clock()
            self._trial_in_flight = False
            if self._state == "half_open":
                self._state = "open"
                self._failure_count = self.failure_threshold
            else:
                self._failure_count += 1
                if self._failure_count >= self.failure_threshold:
                    self._state = "open"
