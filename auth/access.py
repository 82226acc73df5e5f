"""
auth/access.py -- Per-request authorization decisions.

AuthorizationFilter runs once per inbound request, before any route handler
(wired as HTTP middleware in api/main.py):

  1. Extract the bearer token from the Authorization header. No header means
     anonymous.
  2. Validate it through TokenService. An invalid or expired token also means
     anonymous -- the path rules decide whether that matters.
  3. Walk the rule table in order; the first rule whose prefix matches wins.
  4. Return ALLOW, UNAUTHORIZED (no usable identity) or FORBIDDEN (identity
     present, role missing).

The resolved Principal is handed back to the caller, which attaches it to the
request's own state. Nothing here touches global or thread-local state.

Prefix matching is segment-aware: "/api/admin" matches "/api/admin" and
"/api/admin/users" but not "/api/administrators".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from auth.models import Principal, Role
from auth.tokens import TokenService
from core.errors import TokenError

logger = logging.getLogger("ecommerce.auth.access")

_BEARER_PREFIX = "bearer "


class AccessDecision(str, Enum):
    ALLOW = "allow"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


class RuleKind(str, Enum):
    PERMIT = "permit"  # anyone, authenticated or not
    ROLES = "roles"  # authenticated and holding at least one of the roles
    AUTHENTICATED = "authenticated"  # any authenticated principal


@dataclass(frozen=True)
class AccessRule:
    prefixes: tuple[str, ...]
    kind: RuleKind
    roles: frozenset[Role] = field(default_factory=frozenset)

    def matches(self, path: str) -> bool:
        return any(path == p or path.startswith(p.rstrip("/") + "/") for p in self.prefixes)


def permit(*prefixes: str) -> AccessRule:
    return AccessRule(prefixes=prefixes, kind=RuleKind.PERMIT)


def require_roles(prefix: str, roles: Iterable[Role]) -> AccessRule:
    return AccessRule(prefixes=(prefix,), kind=RuleKind.ROLES, roles=frozenset(roles))


# Evaluated top to bottom, first match wins. Anything unmatched requires an
# authenticated principal.
DEFAULT_RULES: tuple[AccessRule, ...] = (
    # Public auth endpoints
    permit("/auth", "/api/public"),
    # API documentation
    permit("/docs", "/redoc", "/openapi.json"),
    # Role-gated areas
    require_roles("/api/user", {Role.USER}),
    require_roles("/api/admin", {Role.ADMIN}),
    require_roles("/api/moderator", {Role.MODERATOR, Role.ADMIN}),
)


def extract_bearer(header: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header, or None."""
    if not header or not header.lower().startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


class AuthorizationFilter:
    """Resolve the request principal and decide access by path."""

    def __init__(self, tokens: TokenService, rules: Sequence[AccessRule] = DEFAULT_RULES) -> None:
        self._tokens = tokens
        self._rules = tuple(rules)

    def resolve_principal(self, authorization_header: str | None) -> Principal | None:
        token = extract_bearer(authorization_header)
        if token is None:
            return None
        try:
            return self._tokens.validate(token)
        except TokenError as exc:
            logger.info("Ignoring unusable bearer token: %s", type(exc).__name__)
            return None

    def decide(self, path: str, principal: Principal | None) -> AccessDecision:
        for rule in self._rules:
            if not rule.matches(path):
                continue
            if rule.kind is RuleKind.PERMIT:
                return AccessDecision.ALLOW
            if principal is None:
                return AccessDecision.UNAUTHORIZED
            if rule.kind is RuleKind.ROLES and not principal.has_any_role(rule.roles):
                return AccessDecision.FORBIDDEN
            return AccessDecision.ALLOW

        if principal is None:
            return AccessDecision.UNAUTHORIZED
        return AccessDecision.ALLOW

    def evaluate(self, path: str, authorization_header: str | None) -> tuple[AccessDecision, Principal | None]:
        principal = self.resolve_principal(authorization_header)
        decision = self.decide(path, principal)
        if decision is not AccessDecision.ALLOW:
            logger.info(
                "Access %s for %s (user id=%s)",
                decision.value,
                path,
                principal.id if principal else "anonymous",
            )
        return decision, principal
