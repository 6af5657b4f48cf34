import re
import hashlib
import secrets

# Domestic numbering of the reference deployment
COUNTRY_CALLING_CODE = "7"
TRUNK_PREFIX = "8"
MOBILE_LEADING_DIGIT = "9"

OTP_MIN = 100000
OTP_MAX = 999999


# =========================
# OTP Generation
# =========================
def generate_otp() -> str:
    """Generate a secure 6-digit OTP."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


# =========================
# Phone Handling
# =========================
def normalize_phone_to_e164(raw) -> str:
    """Canonicalize phone input to E.164-like form.

    Returns an empty string when nothing usable was supplied; callers treat
    that as a client error.
    """
    if not raw:
        return ""
    trimmed = str(raw).strip()
    if trimmed.startswith("+"):
        return trimmed

    digits = re.sub(r"\D", "", trimmed)
    if not digits:
        return ""

    if len(digits) == 11 and digits.startswith(TRUNK_PREFIX):
        return f"+{COUNTRY_CALLING_CODE}{digits[1:]}"

    if len(digits) == 10 and digits.startswith(MOBILE_LEADING_DIGIT):
        return f"+{COUNTRY_CALLING_CODE}{digits}"

    if len(digits) == 11 and digits.startswith(COUNTRY_CALLING_CODE):
        return f"+{digits}"

    return f"+{digits}"


def phone_digits(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def hash_phone_number(phone: str) -> str:
    """Hash phone number for security (one-way hash)"""
    return hashlib.sha256(phone.encode()).hexdigest()
