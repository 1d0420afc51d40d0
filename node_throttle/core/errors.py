"""Application-level exception types.

This module defines domain errors used across the engine and store adapters,
enabling consistent error handling and logging for host applications.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and callers.

    Fields are optional so each error only carries what applies to it.
    """

    code: str
    message: str
    hint: str
    min_value: float
    actual_value: Any
    limit: int
    period_seconds: float
    retry_after: float
    backend: str
    operation: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for throttling/store failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class StoreAppError(AppError):
    """Raised when the counter store cannot be written or prepared."""


class ThrottledAppError(AppError):
    """Raised by enforce() when an identifier is over its quota."""
