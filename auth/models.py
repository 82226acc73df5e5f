"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class. User and Principal own the domain shape; the directory,
gate and token service do the work.

User is the stored identity record. Principal is its request-scoped
projection: what the token carries and what handlers see. Principal never
holds the password hash, so it is safe to attach to a request or log by id.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional


class Role(str, Enum):
    """Closed set of roles. Each maps to a stable authority string."""

    USER = "USER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"

    @property
    def authority(self) -> str:
        return f"ROLE_{self.value}"

    @classmethod
    def from_authority(cls, authority: str) -> "Role":
        """Parse "ROLE_ADMIN" (or bare "ADMIN") back into a Role.

        Raises ValueError for anything outside the enum.
        """
        name = authority[len("ROLE_") :] if authority.startswith("ROLE_") else authority
        return cls(name)


DEFAULT_ROLES: frozenset[Role] = frozenset({Role.USER})


@dataclass
class User:
    """Stored identity record.

    national_id is the normalized 11-digit CPF. email is trimmed and lower-cased
    before it reaches this dataclass. Both are unique across users; the store
    enforces that with UNIQUE constraints.

    id is None before the record is written to the database.
    """

    name: str
    national_id: str
    birth_date: date
    email: str
    password_hash: str = field(repr=False)
    roles: set[Role] = field(default_factory=lambda: set(DEFAULT_ROLES))
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Principal:
    """Authenticated identity attached to a single request. Never persisted."""

    id: int
    name: str
    email: str
    national_id: str
    roles: frozenset[Role]

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        return not self.roles.isdisjoint(roles)

    @property
    def authorities(self) -> list[str]:
        """Authority strings, sorted so token claims are deterministic."""
        return sorted(role.authority for role in self.roles)
