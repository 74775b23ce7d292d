"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses. Each subclass carries
the HTTP status the API layer maps it to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    order_id: str
    attempts: int
    attempts_remaining: int
    max_attempts: int
    retry_after: int
    limit: int
    remaining: int
    reset_at: int
    status: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message (safe to show to clients).
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    http_status: ClassVar[int] = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class NotFoundAppError(AppError):
    """Raised when an order or an active OTP cannot be found."""

    http_status = 404


class ConflictAppError(AppError):
    """Raised when the order is in a state that forbids the operation."""

    http_status = 409


class RateLimitAppError(AppError):
    """Raised when a caller exceeds a rate-limit quota."""

    http_status = 429


class TooManyAttemptsAppError(AppError):
    """Raised when an OTP has used up its verification attempts."""

    http_status = 429


class OtpExpiredAppError(AppError):
    """Raised when an OTP is submitted after its expiry."""


class InvalidOtpAppError(AppError):
    """Raised when a submitted OTP does not match the stored hash."""

    http_status = 401


class PersistenceAppError(AppError):
    """Raised when the OTP store or order gateway fails.

    The message is generic; the underlying cause stays on ``__cause__`` for logs.
    """

    http_status = 500
