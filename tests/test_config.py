"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from handoff.core.config import AppSettings, OtpSettings, RateLimitSettings


def test_otp_cleanup_interval_reads_otp_prefix(monkeypatch) -> None:
    monkeypatch.setenv("OTP_CLEANUP_INTERVAL_MINUTES", "15")

    assert OtpSettings().cleanup_interval_minutes == 15
    assert "cleanup_interval_minutes" not in AppSettings.model_fields


def test_otp_defaults() -> None:
    settings = OtpSettings()

    assert (settings.code_min, settings.code_max) == (1000, 9999)
    assert settings.cleanup_interval_minutes == 60


def test_code_range_must_be_ordered() -> None:
    with pytest.raises(ValidationError, match="OTP_CODE_MIN must not exceed OTP_CODE_MAX"):
        OtpSettings(code_min=5000, code_max=4000)


def test_single_value_code_range_is_allowed() -> None:
    settings = OtpSettings(code_min=4821, code_max=4821)

    assert settings.code_min == settings.code_max == 4821


def test_rate_limit_skip_flags_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_SKIP_FAILED_REQUESTS", "true")

    settings = RateLimitSettings()

    assert settings.skip_failed_requests is True
    assert settings.skip_successful_requests is False
