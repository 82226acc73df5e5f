"""
core/identifiers.py -- National identifier (CPF) and email validation.

Pure functions, no I/O, no shared state. The directory and the API schemas
both call into this module so the rules live in exactly one place.

CPF check digits:
  The first nine digits are weighted 10..2, summed, and reduced mod 11.
  The second check digit repeats the process over the first ten digits
  (the first check digit included) with weights 11..2. A reduced value of
  10 or 11 maps to 0.

Masking helpers are here rather than in the logging setup because every
module that logs an identifier must mask it the same way.
"""

from __future__ import annotations

import re

NATIONAL_ID_LENGTH = 11

# Accepted input shapes: 11 bare digits, or the punctuated 000.000.000-00 form.
# ASCII digits only; \d would also accept fullwidth and other Unicode digits.
NATIONAL_ID_INPUT_PATTERN = r"[0-9]{11}|[0-9]{3}\.[0-9]{3}\.[0-9]{3}-[0-9]{2}"

_NATIONAL_ID_INPUT_RE = re.compile(NATIONAL_ID_INPUT_PATTERN)
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9+_.-]+@([A-Za-z0-9.-]+\.[A-Za-z]{2,})$")

_VISIBLE_DIGITS = 3


def normalize(raw: str | None) -> str:
    """Strip every character except ASCII 0-9. None becomes an empty string."""
    if raw is None:
        return ""
    return _NON_DIGIT_RE.sub("", raw)


def looks_like_national_id(raw: str | None) -> bool:
    """Return True if raw has one of the accepted CPF input shapes.

    Shape only -- the checksum is verified by is_valid_national_id().
    """
    if not raw:
        return False
    return _NATIONAL_ID_INPUT_RE.fullmatch(raw.strip()) is not None


def _check_digit(digits: list[int], first_weight: int) -> int:
    total = sum(d * (first_weight - i) for i, d in enumerate(digits))
    value = 11 - (total % 11)
    return 0 if value >= 10 else value


def is_valid_national_id(raw: str | None) -> bool:
    """Validate a CPF: length, repeated-digit rule, and both check digits."""
    cpf = normalize(raw)
    if len(cpf) != NATIONAL_ID_LENGTH:
        return False
    # 000.000.000-00, 111.111.111-11, ... satisfy the checksum but are not issued.
    if len(set(cpf)) == 1:
        return False

    digits = [int(c) for c in cpf]
    first = _check_digit(digits[:9], 10)
    second = _check_digit(digits[:9] + [first], 11)
    return digits[9] == first and digits[10] == second


def normalize_email(raw: str | None) -> str:
    """Trim and lower-case an email address."""
    return (raw or "").strip().lower()


def is_valid_email(raw: str | None) -> bool:
    """Loose RFC check: local part, '@', dotted domain, TLD of 2+ letters."""
    if not raw or not raw.strip():
        return False
    return _EMAIL_RE.match(raw.strip()) is not None


# ---------------------------------------------------------------------------
# Log masking
# ---------------------------------------------------------------------------


def mask_national_id(raw: str | None) -> str:
    """Keep the first three digits, mask the rest (11144477735 -> 111********)."""
    cpf = normalize(raw)
    if not cpf:
        return "***"
    visible = cpf[:_VISIBLE_DIGITS]
    return visible + "*" * (len(cpf) - len(visible))


def mask_email(raw: str | None) -> str:
    """Keep the first local-part character and the domain (user@x.com -> u***@x.com)."""
    if not raw or "@" not in raw:
        return "***"
    local, _, domain = raw.strip().partition("@")
    if len(local) <= 1:
        return f"***@{domain}"
    return f"{local[0]}***@{domain}"
