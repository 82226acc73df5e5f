"""
core/errors.py -- Error taxonomy for the authentication service.

Every domain failure is an AuthServiceError subclass carrying three things the
HTTP layer needs: a stable machine-readable code, the status code it maps to,
and a client-safe message. api/main.py registers one exception handler for
the whole hierarchy, so routes never build error responses by hand.

Client-safe means the message may be shown to whoever sent the request.
Internal detail (which branch of a login failed, raw storage exceptions)
goes to the server log only.

Status mapping:
  ValidationError, DuplicateError, AccountNotFoundError  -> 400
  AuthenticationError, TokenError                        -> 401
  ForbiddenError                                         -> 403
  StorageError                                           -> 500

Duplicates are 400 rather than 409 to keep the registration contract that
existing clients were built against.
"""

from __future__ import annotations


class AuthServiceError(Exception):
    """Base class for all expected failures raised by the auth core."""

    code: str = "error"
    status_code: int = 400
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Input validation (400)
# ---------------------------------------------------------------------------


class ValidationError(AuthServiceError):
    code = "validation_error"
    default_message = "Invalid data."


class InvalidIdentifierError(ValidationError):
    code = "invalid_national_id"
    default_message = "Invalid national ID."


class InvalidEmailError(ValidationError):
    code = "invalid_email"
    default_message = "Invalid email."


class UnderageError(ValidationError):
    code = "underage"
    default_message = "User must be at least 18 years old."


class PasswordPolicyError(ValidationError):
    code = "weak_password"
    default_message = "Password does not meet the password policy."


# ---------------------------------------------------------------------------
# Uniqueness (400, see module docstring)
# ---------------------------------------------------------------------------


class DuplicateError(AuthServiceError):
    code = "duplicate"
    default_message = "Account already exists."


class DuplicateIdentifierError(DuplicateError):
    code = "duplicate_national_id"
    default_message = "National ID already registered."


class DuplicateEmailError(DuplicateError):
    code = "duplicate_email"
    default_message = "Email already registered."


class AccountNotFoundError(AuthServiceError):
    code = "account_not_found"
    default_message = "No account matches the given national ID and birth date."


# ---------------------------------------------------------------------------
# Authentication (401)
# ---------------------------------------------------------------------------


class AuthenticationError(AuthServiceError):
    """Login failure. Every subclass shares one client message [anti-enumeration]."""

    code = "bad_credentials"
    status_code = 401
    default_message = "Invalid national ID or password."


class InvalidCredentialsError(AuthenticationError):
    pass


class AccountDisabledError(AuthenticationError):
    pass


class TokenError(AuthServiceError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid or expired token."


class MalformedTokenError(TokenError):
    pass


class ExpiredTokenError(TokenError):
    pass


# ---------------------------------------------------------------------------
# Authorization (403)
# ---------------------------------------------------------------------------


class ForbiddenError(AuthServiceError):
    code = "forbidden"
    status_code = 403
    default_message = "Insufficient role for this resource."


# ---------------------------------------------------------------------------
# Infrastructure (500)
# ---------------------------------------------------------------------------


class StorageError(AuthServiceError):
    """Persistence failure. Never retried; the cause is chained via `from`."""

    code = "internal_error"
    status_code = 500
    default_message = "An unexpected error occurred."
