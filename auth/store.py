"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. The directory never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(national_id) and UNIQUE(email) are declared on the table. The
  directory checks existence before inserting, but two concurrent
  registrations can both pass that check; the constraint is what guarantees
  only one of them commits. save() lets IntegrityError propagate so the
  directory can report the right duplicate error.

Roles live in a separate user_roles table (one row per user/role pair) so a
user can hold several roles without a delimited string column.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import Role, User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("national_id", String(11), nullable=False, unique=True),
    Column("birth_date", Date, nullable=False),
    Column("email", String(150), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role", String(20), primary_key=True),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///./ecommerce_auth.db")
        user = store.save(User(name="Ana Souza", national_id="11144477735", ...))
        store.find_by_national_id("11144477735")
        store.close()

    Lookups expect already-normalized keys (digits-only national ID,
    lower-cased email). The directory normalizes before calling in.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_id(self, user_id: int) -> User | None:
        return self._find_one(_users.c.id == user_id)

    def find_by_national_id(self, national_id: str) -> User | None:
        return self._find_one(_users.c.national_id == national_id)

    def find_by_email(self, email: str) -> User | None:
        return self._find_one(_users.c.email == email)

    def find_by_national_id_and_birth_date(self, national_id: str, birth_date: date) -> User | None:
        """Exact match on both columns. Used by the forgot-password flow."""
        return self._find_one((_users.c.national_id == national_id) & (_users.c.birth_date == birth_date))

    def exists_by_national_id(self, national_id: str) -> bool:
        return self._exists(_users.c.national_id == national_id)

    def exists_by_email(self, email: str) -> bool:
        return self._exists(_users.c.email == email)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, user: User) -> User:
        """Insert a new user (id is None) or update an existing one; return the stored record.

        national_id and email are never rewritten on update -- they are
        immutable after creation. Roles are replaced wholesale.

        Raises sqlalchemy.exc.IntegrityError when an insert collides with an
        existing national_id or email.
        """
        with self.engine.begin() as conn:
            if user.id is None:
                result = conn.execute(
                    _users.insert().values(
                        name=user.name,
                        national_id=user.national_id,
                        birth_date=user.birth_date,
                        email=user.email,
                        password_hash=user.password_hash,
                        is_active=user.is_active,
                        created_at=_now_iso(),
                    )
                )
                user_id = result.inserted_primary_key[0]
            else:
                user_id = user.id
                conn.execute(
                    _users.update()
                    .where(_users.c.id == user_id)
                    .values(name=user.name, password_hash=user.password_hash, is_active=user.is_active)
                )
                conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            if user.roles:
                conn.execute(
                    _user_roles.insert(),
                    [{"user_id": user_id, "role": role.value} for role in sorted(user.roles)],
                )
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            return _row_to_user(row, self._roles_for(conn, user_id))

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_one(self, condition) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(condition)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._roles_for(conn, row.id))

    def _exists(self, condition) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(condition).limit(1)).fetchone()
        return row is not None

    @staticmethod
    def _roles_for(conn: Connection, user_id: int) -> set[Role]:
        rows = conn.execute(select(_user_roles.c.role).where(_user_roles.c.user_id == user_id)).fetchall()
        return {Role(r.role) for r in rows}


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, roles: set[Role]) -> User:
    return User(
        id=row.id,
        name=row.name,
        national_id=row.national_id,
        birth_date=row.birth_date,
        email=row.email,
        password_hash=row.password_hash,
        roles=roles,
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )
