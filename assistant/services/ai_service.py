"""LLM access with bounded retries and a circuit breaker.

Callers that must not fail use `try_infer`, which returns a Result; `infer`
raises LLMUnavailableError once retries are exhausted or the breaker is open.
"""

import time
from typing import Optional

import httpx

from assistant.logging_config import get_logger
from assistant.services.circuit_breaker import CircuitBreaker
from assistant.services.llm import LLMProvider, OpenAIProviderError
from assistant.services.result import Result

logger = get_logger("ai_service")


class LLMUnavailableError(Exception):
    """LLM call failed after retries, or the circuit breaker is open."""


def _log_timing(stage: str, elapsed_ms: float, *, extra: dict | None = None) -> None:
    context: dict = dict(extra or {})
    context["stage"] = stage
    context["elapsed_ms"] = round(elapsed_ms, 2)
    logger.info("Timing", extra={"context": context})


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, OpenAIProviderError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


class LLMClient:
    def __init__(
        self,
        provider: Optional[LLMProvider],
        breaker: Optional[CircuitBreaker] = None,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        timeout_seconds: float = 30.0,
        model: Optional[str] = None,
        sleep=time.sleep,
    ):
        self.provider = provider
        self.breaker = breaker or CircuitBreaker()
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self.model = model
        self._sleep = sleep

    def infer(self, system_prompt: str, user_prompt: str, *, stage: str = "llm") -> str:
        if self.provider is None:
            raise LLMUnavailableError("LLM provider not configured")
        if not self.breaker.allow_request():
            logger.warning(f"LLM circuit open, skipping call: stage={stage}")
            raise LLMUnavailableError("LLM circuit breaker is open")

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            start = time.monotonic()
            try:
                response = self.provider.generate(
                    messages,
                    model=self.model,
                    timeout_seconds=self.timeout_seconds,
                )
            except Exception as exc:
                last_error = exc
                _log_timing(
                    "llm_ms",
                    (time.monotonic() - start) * 1000,
                    extra={"phase": stage, "attempt": attempt, "error": str(exc)},
                )
                if attempt < attempts and _is_retryable(exc):
                    logger.warning(f"LLM call failed (attempt {attempt}/{attempts}), retrying: {exc}")
                    self._sleep(self.backoff_seconds * attempt)
                    continue
                break
            else:
                _log_timing(
                    "llm_ms",
                    (time.monotonic() - start) * 1000,
                    extra={"phase": stage, "attempt": attempt, "model": response.model},
                )
                self.breaker.record_success()
                return response.content

        self.breaker.record_failure()
        logger.error(f"LLM unavailable: stage={stage} error={last_error}")
        raise LLMUnavailableError(str(last_error)) from last_error

    def try_infer(self, system_prompt: str, user_prompt: str, *, stage: str = "llm") -> Result[str]:
        try:
            return Result.success(self.infer(system_prompt, user_prompt, stage=stage))
        except LLMUnavailableError as e:
            return Result.failure(str(e), "llm_unavailable")
