"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Services never touch
SQL directly, and the store applies no business rules -- it is the single
source of truth that the services reason about.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  email is UNIQUE (exact, case-sensitive match as stored).
  refresh_token is UNIQUE too: a live refresh token identifies exactly one
  user. SQLite and Postgres both treat NULLs as distinct in UNIQUE
  constraints, so any number of users may have no open session.

Concurrency:
  Writes are last-writer-wins. Two concurrent logins for one user race on
  refresh_token and the later UPDATE survives; there is no optimistic locking.

DB URL: passed in by the caller (Settings.database_url in the app and CLI).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import Role, User, UserStatus

# Fields update() accepts. Everything else is fixed after insert.
_MUTABLE_FIELDS = frozenset({"status", "refresh_token"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("full_name", String(255), nullable=False),
    Column("birth_date", Date, nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False, server_default=Role.USER.value),
    Column("status", String(10), nullable=False, server_default=UserStatus.ACTIVE.value),
    Column("refresh_token", Text, unique=True),  # NULL = no open session
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind the session writer.

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
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user_id = store.create(User(full_name="A", birth_date=date(1990, 1, 1),
                                    email="a@x.com", hashed_password=hash_password("secret1")))
        user = store.find_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        return self._find_one(_users.c.email == email)

    def find_by_id(self, user_id: int) -> User | None:
        return self._find_one(_users.c.id == user_id)

    def find_by_refresh_token(self, refresh_token: str) -> User | None:
        """Return the user whose live refresh token equals refresh_token, if any."""
        if not refresh_token:
            return None
        return self._find_one(_users.c.refresh_token == refresh_token)

    def list_users(self) -> list[User]:
        """Return all users ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def list_by_role_and_status(self, role: Role, status: UserStatus) -> list[User]:
        """Return users matching both role and status. Always a fresh read, never cached."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select()
                .where((_users.c.role == role.value) & (_users.c.status == status.value))
                .order_by(_users.c.id)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The auth service translates that into a Conflict, which covers the
        race where two registrations pass the find_by_email check together.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    full_name=user.full_name,
                    birth_date=user.birth_date,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role.value,
                    status=user.status.value,
                    refresh_token=user.refresh_token,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: status and refresh_token. Enum values may be passed as
        enums or strings.
        Unknown fields raise ValueError rather than being silently ignored.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update user fields: {sorted(unknown)!r}")
        if "status" in fields:
            fields["status"] = UserStatus(fields["status"]).value
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_one(self, clause) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(clause)).fetchone()
        return _row_to_user(row) if row is not None else None


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    birth_date = row.birth_date
    if isinstance(birth_date, str):
        birth_date = date.fromisoformat(birth_date)
    return User(
        id=row.id,
        full_name=row.full_name,
        birth_date=birth_date,
        email=row.email,
        hashed_password=row.hashed_password,
        role=Role(row.role),
        status=UserStatus(row.status),
        refresh_token=row.refresh_token,
        created_at=row.created_at,
    )
