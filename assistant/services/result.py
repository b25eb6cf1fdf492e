from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @staticmethod
    def success(value: T) -> "Result[T]":
        return Result(ok=True, value=value)

    @staticmethod
    def failure(error: str, code: str = "unknown") -> "Result[T]":
        return Result(ok=False, error=error, error_code=code)


@dataclass(frozen=True)
class IntentResult:
    name: str
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        return self.parameters.get("fallback") == "true"


@dataclass(frozen=True)
class ApiCallResult:
    source: str
    success: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None

    @staticmethod
    def ok(source: str, payload: dict[str, Any]) -> "ApiCallResult":
        return ApiCallResult(source=source, success=True, payload=payload)

    @staticmethod
    def failed(source: str, reason: str) -> "ApiCallResult":
        return ApiCallResult(source=source, success=False, error_message=reason)


@dataclass(frozen=True)
class RetrievalResult:
    id: str
    title: str
    excerpt: str
    relevance: float
