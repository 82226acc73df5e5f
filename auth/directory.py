"""
auth/directory.py -- User registration, lookup and password reset.

UserDirectory is the only component that writes user records. It validates
input through core/identifiers.py and core/policy.py, checks uniqueness,
hashes passwords through the injected PasswordHasher, and persists through
the injected PersistenceStore.

Uniqueness:
  register() checks exists_by_national_id / exists_by_email before saving.
  That read-then-write is not atomic, so the store's UNIQUE constraints are
  the backstop: an IntegrityError from save() is turned into the matching
  duplicate error instead of a 500.

Storage failures are wrapped in StorageError with the original exception
chained. They are never retried.

Logging masks national IDs and emails (core.identifiers.mask_*). Passwords
and hashes are never logged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import DEFAULT_ROLES, Principal, User
from core.errors import (
    AccountNotFoundError,
    DuplicateEmailError,
    DuplicateIdentifierError,
    InvalidEmailError,
    InvalidIdentifierError,
    PasswordPolicyError,
    StorageError,
    UnderageError,
    ValidationError,
)
from core.identifiers import (
    is_valid_email,
    is_valid_national_id,
    mask_email,
    mask_national_id,
    normalize,
    normalize_email,
)
from core.policy import check_name, check_reset_password, validate_new_password

logger = logging.getLogger("ecommerce.auth.directory")

MINIMUM_AGE = 18


class PersistenceStore(Protocol):
    def find_by_id(self, user_id: int) -> User | None: ...
    def find_by_national_id(self, national_id: str) -> User | None: ...
    def find_by_email(self, email: str) -> User | None: ...
    def find_by_national_id_and_birth_date(self, national_id: str, birth_date: date) -> User | None: ...
    def exists_by_national_id(self, national_id: str) -> bool: ...
    def exists_by_email(self, email: str) -> bool: ...
    def save(self, user: User) -> User: ...


class PasswordHasher(Protocol):
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str) -> bool: ...


def age_on(birth_date: date, today: date) -> int:
    """Whole years between birth_date and today."""
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


class UserDirectory:
    """Registration, lookup and password reset over a PersistenceStore."""

    def __init__(
        self,
        store: PersistenceStore,
        hasher: PasswordHasher,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._today = today

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, national_id: str, birth_date: date, email: str, password: str) -> User:
        """Validate, check uniqueness, hash and persist a new USER account.

        Raises (in check order): ValidationError (name), InvalidIdentifierError,
        InvalidEmailError, UnderageError, PasswordPolicyError,
        DuplicateIdentifierError, DuplicateEmailError, StorageError.
        """
        cpf = normalize(national_id)
        email = normalize_email(email)
        logger.info("Registration attempt for email=%s national_id=%s", mask_email(email), mask_national_id(cpf))

        name_error = check_name(name)
        if name_error:
            raise ValidationError(name_error)
        if not is_valid_national_id(cpf):
            raise InvalidIdentifierError()
        if not is_valid_email(email):
            raise InvalidEmailError()
        if age_on(birth_date, self._today()) < MINIMUM_AGE:
            raise UnderageError()
        validate_new_password(password)

        if self._call(self._store.exists_by_national_id, cpf):
            logger.warning("Registration rejected: national_id=%s already registered", mask_national_id(cpf))
            raise DuplicateIdentifierError()
        if self._call(self._store.exists_by_email, email):
            logger.warning("Registration rejected: email=%s already registered", mask_email(email))
            raise DuplicateEmailError()

        user = User(
            name=name.strip(),
            national_id=cpf,
            birth_date=birth_date,
            email=email,
            password_hash=self._hasher.hash(password),
            roles=set(DEFAULT_ROLES),
            is_active=True,
        )
        try:
            saved = self._store.save(user)
        except IntegrityError as exc:
            # Lost a race against a concurrent registration with the same key.
            logger.warning("Registration hit a uniqueness constraint for email=%s", mask_email(email))
            if self._call(self._store.exists_by_national_id, cpf):
                raise DuplicateIdentifierError() from exc
            raise DuplicateEmailError() from exc
        except SQLAlchemyError as exc:
            logger.error("Failed to save user email=%s: %s", mask_email(email), exc)
            raise StorageError() from exc

        logger.info("User registered id=%s email=%s", saved.id, mask_email(saved.email))
        return saved

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_national_id(self, national_id: str) -> User | None:
        return self._call(self._store.find_by_national_id, normalize(national_id))

    def find_by_email(self, email: str) -> User | None:
        return self._call(self._store.find_by_email, normalize_email(email))

    def find_by_id(self, user_id: int) -> User | None:
        return self._call(self._store.find_by_id, user_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def reset_password(self, national_id: str, birth_date: date, new_password: str) -> User:
        """Replace the password of the account matching BOTH national_id and birth_date.

        The birth date acts as a weak second factor. A national ID that exists
        with a different birth date is reported exactly like an unknown one.
        """
        cpf = normalize(national_id)
        length_error = check_reset_password(new_password)
        if length_error:
            raise PasswordPolicyError(length_error)

        user = self._call(self._store.find_by_national_id_and_birth_date, cpf, birth_date)
        if user is None:
            logger.warning("Password reset rejected: no account for national_id=%s", mask_national_id(cpf))
            raise AccountNotFoundError()

        user.password_hash = self._hasher.hash(new_password)
        saved = self._call(self._store.save, user)
        logger.info("Password reset for user id=%s", saved.id)
        return saved

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    @staticmethod
    def to_principal(user: User) -> Principal:
        if user.id is None:
            raise ValueError("Cannot build a Principal for an unsaved user")
        return Principal(
            id=user.id,
            name=user.name,
            email=user.email,
            national_id=user.national_id,
            roles=frozenset(user.roles),
        )

    @staticmethod
    def _call(fn, *args):
        """Run a store call, wrapping database failures in StorageError."""
        try:
            return fn(*args)
        except SQLAlchemyError as exc:
            logger.exception("Storage failure in %s", fn.__name__)
            raise StorageError() from exc
