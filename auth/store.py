"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
IdentityStore is the repository; _row_to_identity is the mapper.
Services never touch SQL directly.

Uniqueness:
  UNIQUE(username) and UNIQUE(email) are declared on the table, so the
  database rejects a duplicate even when two requests race past the
  service-level check. IntegrityError from those indexes is converted to
  StoreConflict(field) here; services turn that into ConflictError.

  email is nullable and SQL UNIQUE treats NULLs as distinct, so any number of
  identities may have no email. Empty strings are normalized to NULL before
  every write for the same reason.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Identity
from core.config import get_settings
from core.errors import StoreConflict

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), unique=True),  # NULL when not provided
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Substrings that identify which unique index fired. SQLite reports
# "UNIQUE constraint failed: users.username"; PostgreSQL reports the
# constraint name, which SQLAlchemy derives as users_<column>_key.
_CONFLICT_MARKERS: dict[str, tuple[str, ...]] = {
    "username": ("users.username", "users_username_key"),
    "email": ("users.email", "users_email_key"),
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip()
    return email or None


def _conflict_field(exc: IntegrityError) -> str:
    message = str(exc.orig)
    for field, markers in _CONFLICT_MARKERS.items():
        if any(marker in message for marker in markers):
            return field
    raise exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore()
        created = store.insert(Identity(username="alice", hashed_password=hash_password("pw1")))
        identity = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
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

    def get_by_id(self, identity_id: int) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_username(self, username: str) -> Identity | None:
        """Look up an identity by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get_by_email(self, email: str) -> Identity | None:
        """Look up an identity by exact email. Empty or None never matches."""
        email = normalize_email(email)
        if email is None:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_all(self) -> list[Identity]:
        """Return all identities ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_identity(r) for r in rows]

    def count(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, identity: Identity) -> Identity:
        """Insert a new identity and return it with id and created_at filled in.

        Raises StoreConflict("username" | "email") if a unique index rejects
        the row. The check and the insert are one statement, so two concurrent
        inserts of the same username cannot both succeed.
        """
        created_at = _now_iso()
        email = normalize_email(identity.email)
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=identity.username,
                        email=email,
                        hashed_password=identity.hashed_password,
                        created_at=created_at,
                    )
                )
                new_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise StoreConflict(_conflict_field(exc)) from exc
        return Identity(
            id=new_id,
            username=identity.username,
            email=email,
            hashed_password=identity.hashed_password,
            created_at=created_at,
        )

    def update(self, identity: Identity) -> Identity:
        """Write the full mutable state of an existing identity in one UPDATE.

        The caller assembles the complete new record first, so concurrent
        readers see either the old row or the new row, never a mix.
        Raises StoreConflict on a unique index violation.
        """
        email = normalize_email(identity.email)
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.update()
                    .where(_users.c.id == identity.id)
                    .values(
                        username=identity.username,
                        email=email,
                        hashed_password=identity.hashed_password,
                    )
                )
        except IntegrityError as exc:
            raise StoreConflict(_conflict_field(exc)) from exc
        identity.email = email
        return identity

    def delete(self, identity_id: int) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == identity_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
    )
