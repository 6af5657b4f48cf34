import pytest

from app.utils import generate_otp, normalize_phone_to_e164


@pytest.mark.parametrize("raw, expected", [
    ("8 999 123 45 67", "+79991234567"),
    ("8(999)123-45-67", "+79991234567"),
    ("9991234567", "+79991234567"),
    ("79991234567", "+79991234567"),
    ("+79991234567", "+79991234567"),
    ("+1 555 123 4567", "+1 555 123 4567"),
    ("  +79991234567 ", "+79991234567"),
    ("4915112345678", "+4915112345678"),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone_to_e164(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "---"])
def test_normalize_phone_rejects_empty_input(raw):
    assert normalize_phone_to_e164(raw) == ""


@pytest.mark.parametrize("raw", ["8 999 123 45 67", "9991234567", "79991234567", "+79991234567"])
def test_normalize_phone_is_idempotent(raw):
    once = normalize_phone_to_e164(raw)
    assert normalize_phone_to_e164(once) == once


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = generate_otp()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999
