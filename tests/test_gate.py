"""
tests/test_gate.py -- Unit tests for auth/gate.py.

Covers the happy path, each denial branch, and that every denial looks the
same to the caller.
"""

import pytest

from auth.models import Role
from conftest import CPF_ANA, CPF_CARLA, STRONG_PASSWORD
from core.errors import AccountDisabledError, AuthenticationError, InvalidCredentialsError


class _CountingHasher:
    """Wraps a real hasher and counts verify() calls."""

    def __init__(self, inner):
        self._inner = inner
        self.verify_calls = 0

    def hash(self, plain):
        return self._inner.hash(plain)

    def verify(self, plain, hashed):
        self.verify_calls += 1
        return self._inner.verify(plain, hashed)


class TestAuthenticate:
    def test_success_returns_principal_and_token(self, gate, tokens, ana):
        """Correct credentials return the principal and a token that validates to it."""
        result = gate.authenticate(CPF_ANA, STRONG_PASSWORD)
        assert result.principal.id == ana.id
        assert result.principal.roles == frozenset({Role.USER})
        assert tokens.validate(result.token.token) == result.principal

    def test_punctuated_national_id(self, gate, ana):
        """Login accepts the punctuated CPF form."""
        assert gate.authenticate("111.444.777-35", STRONG_PASSWORD).principal.id == ana.id

    def test_wrong_password(self, gate, ana):
        """A wrong password raises InvalidCredentialsError."""
        with pytest.raises(InvalidCredentialsError):
            gate.authenticate(CPF_ANA, "Wrong@123")

    def test_unknown_national_id(self, gate):
        """An unknown CPF raises InvalidCredentialsError."""
        with pytest.raises(InvalidCredentialsError):
            gate.authenticate(CPF_CARLA, STRONG_PASSWORD)

    def test_disabled_account(self, gate, store, ana):
        """A correct password on a disabled account raises AccountDisabledError."""
        ana.is_active = False
        store.save(ana)
        with pytest.raises(AccountDisabledError):
            gate.authenticate(CPF_ANA, STRONG_PASSWORD)

    def test_disabled_account_with_wrong_password_reports_bad_password(self, gate, store, ana):
        """A disabled account with a wrong password reports bad credentials, not disabled."""
        ana.is_active = False
        store.save(ana)
        with pytest.raises(InvalidCredentialsError):
            gate.authenticate(CPF_ANA, "Wrong@123")

    def test_all_denials_share_code_and_message(self, gate, store, ana):
        """Every login denial carries the same code, message and status."""
        errors = []
        for national_id, password in ((CPF_ANA, "Wrong@123"), (CPF_CARLA, STRONG_PASSWORD)):
            with pytest.raises(AuthenticationError) as exc_info:
                gate.authenticate(national_id, password)
            errors.append(exc_info.value)
        ana.is_active = False
        store.save(ana)
        with pytest.raises(AuthenticationError) as exc_info:
            gate.authenticate(CPF_ANA, STRONG_PASSWORD)
        errors.append(exc_info.value)

        assert {e.message for e in errors} == {"Invalid national ID or password."}
        assert {e.code for e in errors} == {"bad_credentials"}
        assert {e.status_code for e in errors} == {401}

    def test_granted_roles_appear_in_principal(self, gate, store, ana):
        """Roles stored on the account are carried into the principal."""
        ana.roles = {Role.USER, Role.ADMIN}
        store.save(ana)
        result = gate.authenticate(CPF_ANA, STRONG_PASSWORD)
        assert result.principal.has_role(Role.ADMIN)


class TestTimingEqualization:
    def test_unknown_national_id_still_runs_bcrypt(self, directory, hasher, tokens):
        """An unknown CPF still runs one bcrypt verify against the dummy hash."""
        from auth.gate import AuthenticationGate

        counting = _CountingHasher(hasher)
        gate = AuthenticationGate(directory, counting, tokens)
        with pytest.raises(InvalidCredentialsError):
            gate.authenticate(CPF_CARLA, STRONG_PASSWORD)
        assert counting.verify_calls == 1
