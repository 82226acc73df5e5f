"""
tests/conftest.py -- Shared test fixtures.

This module provides:
  - store / hasher / tokens / directory / gate: unit-level fixtures over an
    in-memory SQLite store
  - _make_test_store(): named shared-memory store for the ASGI tests
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - api_client: TestClient plus the store, for HTTP integration tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient because it runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

bcrypt runs at its minimum cost (4 rounds) so the suite stays fast; the
algorithm and code path are the same as production.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import date

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_services
from auth.directory import UserDirectory
from auth.gate import AuthenticationGate
from auth.hashing import BcryptPasswordHasher
from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
TEST_TODAY = date(2025, 6, 15)

# Valid CPFs (checksums verified by hand).
CPF_ANA = "11144477735"
CPF_BRUNO = "52998224725"
CPF_CARLA = "12345678909"

STRONG_PASSWORD = "Secret@123"


def valid_cpf(base: str) -> str:
    """Append both CPF check digits to a 9-digit base.

    Lets integration tests mint fresh identifiers without colliding in a
    module-scoped store.
    """
    digits = [int(c) for c in base]
    for first_weight in (10, 11):
        rest = sum(d * w for d, w in zip(digits, range(first_weight, 1, -1))) % 11
        digits.append(0 if rest < 2 else 11 - rest)
    return "".join(str(d) for d in digits)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture(scope="session")
def hasher() -> BcryptPasswordHasher:
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret_key=TEST_SECRET, expire_seconds=3600)


@pytest.fixture
def directory(store: UserStore, hasher: BcryptPasswordHasher) -> UserDirectory:
    return UserDirectory(store, hasher, today=lambda: TEST_TODAY)


@pytest.fixture
def gate(directory: UserDirectory, hasher: BcryptPasswordHasher, tokens: TokenService) -> AuthenticationGate:
    return AuthenticationGate(directory, hasher, tokens)


@pytest.fixture
def ana(directory: UserDirectory) -> User:
    """A registered, active USER account."""
    return directory.register(
        name="Ana Souza",
        national_id=CPF_ANA,
        birth_date=date(1990, 4, 2),
        email="ana@example.com",
        password=STRONG_PASSWORD,
    )


# ---------------------------------------------------------------------------
# ASGI fixtures
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Runs the production build_services() against the test store, with a
    fixed signing key and bcrypt at minimum cost.
    """

    settings = get_settings().model_copy(update={"secret_key": TEST_SECRET, "bcrypt_rounds": 4})

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, settings, user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for HTTP integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real middleware and route handlers against an isolated store.
    """
    user_store = _make_test_store("api")
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()


def grant_roles(user_store: UserStore, national_id: str, *roles: Role) -> User:
    """Give an existing account extra roles (stands in for an admin tool)."""
    user = user_store.find_by_national_id(national_id)
    assert user is not None
    user.roles = set(user.roles) | set(roles)
    return user_store.save(user)
