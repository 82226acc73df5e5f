"""
auth/gate.py -- Credential verification for national ID + password logins.

Each login attempt walks one path:

    received -> user found? -> password matches? -> account active? -> authenticated
                     |               |                   |
                     +-------------- denied -------------+

Unknown national ID and wrong password both raise InvalidCredentialsError.
An inactive account raises AccountDisabledError. All three share one client
message (see core/errors.AuthenticationError) so the response never reveals
whether an account exists. Server logs record the actual cause with the
national ID masked.

Timing equalization [C1]:
  bcrypt runs on every attempt. When the national ID is unknown, the
  password is checked against a dummy hash computed once at construction, so
  response time does not reveal whether the account exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.directory import PasswordHasher, UserDirectory
from auth.models import Principal
from auth.tokens import IssuedToken, TokenService
from core.errors import AccountDisabledError, InvalidCredentialsError
from core.identifiers import mask_national_id, normalize

logger = logging.getLogger("ecommerce.auth.gate")

_DUMMY_PASSWORD = "ecommerce_timing_dummy"


@dataclass(frozen=True)
class AuthenticationResult:
    principal: Principal
    token: IssuedToken


class AuthenticationGate:
    """Verify presented credentials and issue a session token on success."""

    def __init__(self, directory: UserDirectory, hasher: PasswordHasher, tokens: TokenService) -> None:
        self._directory = directory
        self._hasher = hasher
        self._tokens = tokens
        self._dummy_hash = hasher.hash(_DUMMY_PASSWORD)

    def authenticate(self, national_id: str, password: str) -> AuthenticationResult:
        """Return the authenticated principal and a fresh token.

        Raises InvalidCredentialsError or AccountDisabledError. Storage
        failures surface as StorageError from the directory.
        """
        cpf = normalize(national_id)
        masked = mask_national_id(cpf)

        user = self._directory.find_by_national_id(cpf)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self._hasher.verify(password, self._dummy_hash)
            logger.warning("Login denied for national_id=%s: no such account", masked)
            raise InvalidCredentialsError()

        if not self._hasher.verify(password, user.password_hash):
            logger.warning("Login denied for national_id=%s: password mismatch", masked)
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning("Login denied for national_id=%s: account disabled", masked)
            raise AccountDisabledError()

        principal = self._directory.to_principal(user)
        token = self._tokens.issue(principal)
        logger.info("Login succeeded for user id=%s", principal.id)
        return AuthenticationResult(principal=principal, token=token)
