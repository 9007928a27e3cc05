"""Tagged success/failure result returned by every data layer operation."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Outcome of a remote-backed operation.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. Failures are data, not exceptions: callers branch on
    ``success`` and decide themselves whether to retry.

    Attributes:
        success: Whether the operation succeeded.
        value: Payload on success.
        error: Human-readable reason on failure.
        data: Extra context, e.g. a partial-success report on failure.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    value: T | None = None
    error: str | None = None
    data: dict = {}

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str, data: dict | None = None) -> "Result[T]":
        return cls(success=False, error=error, data=data or {})

    def __str__(self) -> str:
        if self.success:
            return "Success"
        return f"Error: {self.error or ''}"
