import pytest

from handoff.utils.phone import normalize_ng_phone


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("+2348012345678", "+2348012345678"),
        ("2348012345678", "+2348012345678"),
        ("08012345678", "+2348012345678"),
        ("0801 234 5678", "+2348012345678"),
        ("+234 (801) 234-5678", "+2348012345678"),
    ],
)
def test_accepts_nigerian_formats(raw: str, expected: str) -> None:
    assert normalize_ng_phone(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "12345", "+14155550123", "0801234567", "080123456789", "+234801234567a"],
)
def test_rejects_other_numbers(raw: str) -> None:
    assert normalize_ng_phone(raw) is None
