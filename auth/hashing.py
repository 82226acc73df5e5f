"""
auth/hashing.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

bcrypt only reads the first 72 bytes of its input. Every password policy in
core/policy.py caps length at 20 characters, which keeps inputs far below the
truncation threshold even for multi-byte characters.

BcryptPasswordHasher is the PasswordHasher the directory and gate depend on.
The cost factor is injected so tests can run at the minimum cost (4).
"""

from __future__ import annotations

import bcrypt


class BcryptPasswordHasher:
    """hash() with a fresh per-call salt; verify() with bcrypt's constant-time check."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the hash. A corrupt hash is a mismatch."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False
