"""
Applications Validators

Pure functions that normalize and check a raw submission before anything
touches a store. No I/O happens here.
"""

import re
from dataclasses import dataclass

# Fields that must be present (non-empty after cleaning), in message order.
REQUIRED_FIELDS = (
    "name",
    "national_id",
    "phone",
    "email",
    "postal_code",
    "city",
    "neighborhood",
    "street",
    "commute_mode",
    "target_role",
)

DEFAULT_MAX_LENGTH = 200

# Truncation applied while cleaning; fields not listed use DEFAULT_MAX_LENGTH.
CLEAN_LIMITS = {
    "phone": 40,
    "postal_code": 12,
    "commute_mode": 40,
    "submitted_at": 40,
}

# Hard caps checked after cleaning; exceeding one rejects the submission.
LENGTH_CAPS = {
    "name": 180,
    "email": 180,
    "city": 120,
    "neighborhood": 120,
    "street": 180,
    "target_role": 180,
}

NATIONAL_ID_LENGTH = 11

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$", re.ASCII)
_NON_DIGIT_RE = re.compile(r"\D")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None


def clean(value: object, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Stringify, trim and truncate a raw form value. None becomes ''."""
    if value is None:
        return ""
    return str(value).strip()[:max_length]


def clean_submission(raw: dict[str, object]) -> dict[str, str]:
    """Apply `clean` to every known field of a raw submission."""
    fields = (*REQUIRED_FIELDS, "submitted_at")
    return {
        field: clean(raw.get(field), CLEAN_LIMITS.get(field, DEFAULT_MAX_LENGTH))
        for field in fields
    }


def is_email(value: str) -> bool:
    return value.isascii() and bool(_EMAIL_RE.match(value.lower()))


def normalize_national_id(value: str) -> str:
    """Digits only, at most 11 of them."""
    return _NON_DIGIT_RE.sub("", value)[:NATIONAL_ID_LENGTH]


def normalize_role(value: str) -> str:
    return value.strip().lower()


def _check_digit(digits: str) -> int:
    """Weighted-sum mod 11 check digit; weights run from len+1 down to 2."""
    total = sum(int(d) * (len(digits) + 1 - i) for i, d in enumerate(digits))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_national_id(value: str) -> bool:
    """
    Validate a CPF number.

    Non-digits are ignored. The number must have exactly 11 digits, must not
    repeat one digit throughout, and must end with the two check digits
    computed over its first 9 and first 10 digits.
    """
    digits = _NON_DIGIT_RE.sub("", value)
    if len(digits) != NATIONAL_ID_LENGTH:
        return False
    if len(set(digits)) == 1:
        return False

    first = _check_digit(digits[:9])
    second = _check_digit(digits[:9] + str(first))
    return digits[9:] == f"{first}{second}"


def validate_submission(submission: dict[str, str]) -> ValidationResult:
    """
    Check a cleaned submission.

    Checks run in a fixed order and the first failure wins: missing fields
    (all of them are named), e-mail format, national ID, length caps.
    """
    missing = [field for field in REQUIRED_FIELDS if not submission.get(field)]
    if missing:
        return ValidationResult(False, f"Missing required fields: {', '.join(missing)}")

    if not is_email(submission["email"]):
        return ValidationResult(False, "Invalid e-mail address.")

    if not is_valid_national_id(submission["national_id"]):
        return ValidationResult(False, "Invalid national ID (CPF).")

    if any(len(submission[field]) > cap for field, cap in LENGTH_CAPS.items()):
        return ValidationResult(False, "Some fields exceed the allowed length.")

    return ValidationResult(True)
