"""Tests for OTP code generation and scrypt hashing."""

import pytest

from handoff.utils.otp_crypto import ScryptHasher, generate_code, generate_salt


def test_generate_code_is_four_digits_in_range() -> None:
    codes = {generate_code() for _ in range(500)}

    for code in codes:
        assert code.isdigit()
        assert len(code) == 4
        assert 1000 <= int(code) <= 9999
    # 500 draws from 9000 values should not collapse to a handful
    assert len(codes) > 100


def test_generate_code_single_value_range() -> None:
    assert generate_code(1234, 1234) == "1234"


@pytest.mark.parametrize("low,high", [(-1, 10), (10, 5)])
def test_generate_code_rejects_bad_range(low: int, high: int) -> None:
    with pytest.raises(ValueError):
        generate_code(low, high)


def test_generate_salt_is_hex_of_requested_size() -> None:
    salt = generate_salt(16)

    assert len(salt) == 32
    int(salt, 16)
    assert generate_salt(16) != salt


def test_derive_is_deterministic_per_salt(fast_hasher: ScryptHasher) -> None:
    digest = fast_hasher.derive("4821", "salt-a")

    assert digest == fast_hasher.derive("4821", "salt-a")
    assert digest != fast_hasher.derive("4821", "salt-b")
    assert len(digest) == fast_hasher.dklen * 2


def test_default_parameters() -> None:
    hasher = ScryptHasher()

    assert (hasher.n, hasher.r, hasher.p, hasher.dklen) == (16384, 8, 1, 64)
    assert len(hasher.derive("4821", generate_salt())) == 128


def test_matches(fast_hasher: ScryptHasher) -> None:
    salt = generate_salt()
    stored = fast_hasher.derive("4821", salt)

    assert fast_hasher.matches("4821", salt, stored) is True
    assert fast_hasher.matches("4822", salt, stored) is False
    assert fast_hasher.matches("4821", generate_salt(), stored) is False
