"""
auth/tokens.py -- Signed, time-bound session tokens.

Security design decisions:
  JWT: python-jose with HS256 (configurable to HS384/HS512). Tokens are
       signed with SECRET_KEY and carry the user id (sub), name, email,
       national_id, role authorities, iat and exp.

  Stateless: validate() trusts the signed claims and never reads the
       database. A role granted or revoked after issue takes effect only when
       the token expires -- that staleness window is the accepted cost of
       skipping a lookup per request. There is no revocation list and no
       refresh flow; a leaked token stays valid until exp.

  Expiry: a token is expired when now >= exp. python-jose treats now == exp
       as still valid, so the exp check is done here against the injected
       clock instead of inside jwt.decode(). The clock also lets tests move
       time without sleeping.

  Failures are terminal. A signature mismatch or a parse error is a
       MalformedTokenError; nothing is retried.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError, jwt

from auth.models import Principal, Role
from core.errors import ExpiredTokenError, MalformedTokenError

logger = logging.getLogger("ecommerce.auth.tokens")

TOKEN_TYPE = "Bearer"

_REQUIRED_CLAIMS = ("sub", "name", "email", "national_id", "roles", "iat", "exp")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int  # seconds
    expires_at: datetime
    token_type: str = TOKEN_TYPE


class TokenService:
    """Issue and validate signed session tokens.

    Usage:
        service = TokenService(secret_key=settings.secret_key, expire_seconds=3600)
        issued = service.issue(principal)
        principal = service.validate(issued.token)
    """

    def __init__(
        self,
        secret_key: str,
        expire_seconds: int = 3600,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds
        self.algorithm = algorithm
        self._clock = clock

    def issue(self, principal: Principal) -> IssuedToken:
        """Encode a signed token for principal, valid for expire_seconds from now."""
        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + self.expire_seconds
        payload = {
            "sub": str(principal.id),
            "name": principal.name,
            "email": principal.email,
            "national_id": principal.national_id,
            "roles": principal.authorities,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        return IssuedToken(
            token=token,
            expires_in=self.expire_seconds,
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )

    def validate(self, token: str) -> Principal:
        """Verify signature and expiry; return the embedded Principal.

        Raises MalformedTokenError on parse errors, bad signatures, missing or
        invalid claims. Raises ExpiredTokenError when now >= exp.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise MalformedTokenError() from exc

        missing = [name for name in _REQUIRED_CLAIMS if name not in claims]
        if missing:
            raise MalformedTokenError(f"Token is missing claims: {', '.join(missing)}")

        try:
            expires_at = int(claims["exp"])
            user_id = int(claims["sub"])
            roles = frozenset(Role.from_authority(a) for a in claims["roles"])
        except (AttributeError, TypeError, ValueError) as exc:
            raise MalformedTokenError() from exc

        if int(self._clock().timestamp()) >= expires_at:
            raise ExpiredTokenError("Token has expired.")
        if not roles:
            raise MalformedTokenError("Token carries no roles.")

        return Principal(
            id=user_id,
            name=str(claims["name"]),
            email=str(claims["email"]),
            national_id=str(claims["national_id"]),
            roles=roles,
        )
