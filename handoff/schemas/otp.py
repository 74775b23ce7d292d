"""Pydantic schemas for the delivery OTP endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class VerifyOtpRequest(BaseModel):
    """Body of ``POST /orders/{order_id}/otp/verify``."""

    otp: str | None = Field(
        default=None,
        description="Code the customer received on WhatsApp, relayed by the courier.",
        examples=["4821"],
    )

    @field_validator("otp", mode="before")
    @classmethod
    def _coerce_otp(cls, value: Any) -> Any:
        # Courier apps sometimes post the code as a JSON number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


class OtpResponse(BaseModel):
    """Successful OTP operation."""

    success: bool = Field(default=True, description="Always true for 2xx responses.")
    message: str = Field(..., description="Human-readable outcome.")
    warning: str | None = Field(
        default=None,
        description="Advisory note, e.g. the customer could not be notified.",
    )


class ErrorResponse(BaseModel):
    """Failed request (4xx/5xx)."""

    success: bool = Field(default=False, description="Always false for error responses.")
    error: str = Field(..., description="Human-readable, non-leaking error message.")
    code: str = Field(..., description="Stable machine-readable error code.")
    request_id: str | None = Field(default=None, description="Correlation id for support.")
    retry_after: int | None = Field(
        default=None,
        description="Seconds to wait before retrying (rate-limited responses only).",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Optional structured context (e.g., attempts remaining).",
    )
