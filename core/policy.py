"""
core/policy.py -- Password and name composition rules.

Registration, login and password reset accept different password lengths:
  register:         8-20 chars, full composition rules
  login:            8-12 chars, length only
  forgot-password:  8-12 chars, length only

The bounds are kept exactly as deployed clients expect them. A password
registered with 13-20 characters cannot be used to log in until it is reset;
see DESIGN.md before changing any of these numbers.

check_* functions return the first violated rule as a message (or None).
validate_new_password() raises PasswordPolicyError with that message so the
directory can fail fast with a single, client-readable reason.
"""

from __future__ import annotations

import re

from core.errors import PasswordPolicyError

NEW_PASSWORD_MIN_LENGTH = 8
NEW_PASSWORD_MAX_LENGTH = 20
LOGIN_PASSWORD_MIN_LENGTH = 8
LOGIN_PASSWORD_MAX_LENGTH = 12
RESET_PASSWORD_MIN_LENGTH = 8
RESET_PASSWORD_MAX_LENGTH = 12

PASSWORD_SYMBOLS = "@$!%*?&"

NAME_MIN_LENGTH = 4
NAME_MAX_LENGTH = 100

_LOWER_RE = re.compile(r"[a-z]")
_UPPER_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"\d")
_SYMBOL_RE = re.compile(f"[{re.escape(PASSWORD_SYMBOLS)}]")
_ALLOWED_RE = re.compile(f"^[A-Za-z0-9{re.escape(PASSWORD_SYMBOLS)}]+$")
# Latin-1 letters cover Portuguese accents (À-ÿ), plus plain whitespace.
_NAME_RE = re.compile(r"^[a-zA-ZÀ-ÿ\s]+$")


def _check_length(raw: str, low: int, high: int, label: str) -> str | None:
    if not (low <= len(raw) <= high):
        return f"{label} must be between {low} and {high} characters."
    return None


def check_new_password(raw: str | None) -> str | None:
    """Return the first registration-policy violation, or None if the password passes."""
    pwd = raw or ""
    length_error = _check_length(pwd, NEW_PASSWORD_MIN_LENGTH, NEW_PASSWORD_MAX_LENGTH, "Password")
    if length_error:
        return length_error
    if not _LOWER_RE.search(pwd):
        return "Password must contain at least one lowercase letter."
    if not _UPPER_RE.search(pwd):
        return "Password must contain at least one uppercase letter."
    if not _DIGIT_RE.search(pwd):
        return "Password must contain at least one digit."
    if not _SYMBOL_RE.search(pwd):
        return f"Password must contain at least one special character ({PASSWORD_SYMBOLS})."
    if not _ALLOWED_RE.match(pwd):
        return f"Password may only contain letters, digits and {PASSWORD_SYMBOLS}."
    return None


def validate_new_password(raw: str | None) -> None:
    """Raise PasswordPolicyError with the first violated rule."""
    error = check_new_password(raw)
    if error:
        raise PasswordPolicyError(error)


def check_login_password(raw: str | None) -> str | None:
    return _check_length(raw or "", LOGIN_PASSWORD_MIN_LENGTH, LOGIN_PASSWORD_MAX_LENGTH, "Password")


def check_reset_password(raw: str | None) -> str | None:
    return _check_length(raw or "", RESET_PASSWORD_MIN_LENGTH, RESET_PASSWORD_MAX_LENGTH, "New password")


def check_name(raw: str | None) -> str | None:
    """Display name: 4-100 chars, letters and spaces only."""
    name = (raw or "").strip()
    length_error = _check_length(name, NAME_MIN_LENGTH, NAME_MAX_LENGTH, "Name")
    if length_error:
        return length_error
    if not _NAME_RE.match(name):
        return "Name may only contain letters and spaces."
    return None
