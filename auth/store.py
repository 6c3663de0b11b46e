"""
auth/store.py -- Session store contract and its SQLAlchemy Core adapter.

SessionStore is the narrow contract the core consumes: principal lookup,
account create/delete, password replacement, and the session record (the
fingerprint of the current refresh token, or None for NoSession).

UserStore implements it with SQLAlchemy Core.
Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_principal is the mapper. Session manager code never touches SQL.

Concurrency:
  swap_session_fingerprint() is a single conditional UPDATE
  (... WHERE id = :id AND refresh_fingerprint = :expected) and reports success
  through rowcount. The database serializes writers, so two refreshes
  presenting the same token cannot both land: the second UPDATE matches zero
  rows. Logout and password change write unconditionally.

  replace_password() sets the new hash and clears refresh_fingerprint in the
  same UPDATE, so a password change can never leave the old session alive.

Errors:
  Lookups return None for "not found". Any driver/connection failure is
  re-raised as StoreUnavailable; unique-constraint violations on insert
  become DuplicatePrincipal.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicatePrincipal, StoreUnavailable
from auth.models import Principal

logger = logging.getLogger("sessionwarden.store")


class SessionStore(Protocol):
    """What the session manager and authenticator need from user storage."""

    def find_by_id(self, user_id: int) -> Principal | None: ...

    def find_by_username_or_email(self, identifier: str) -> Principal | None: ...

    def create_user(self, principal: Principal) -> int: ...

    def delete_user(self, user_id: int) -> bool: ...

    def replace_password(self, user_id: int, hashed_password: str) -> bool:
        """Store a new password hash and clear the session record atomically."""

    def get_session_fingerprint(self, user_id: int) -> str | None: ...

    def set_session_fingerprint(self, user_id: int, fingerprint: str | None) -> None:
        """Overwrite the session record unconditionally. None means NoSession."""

    def swap_session_fingerprint(self, user_id: int, expected: str, new: str) -> bool:
        """Write new only if the stored fingerprint still equals expected."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("fullname", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("avatar", Text),  # object-store URL
    Column("cover_image", Text),  # object-store URL
    Column("refresh_fingerprint", String(64)),  # NULL = NoSession
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on a refresh's write.

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
    """SQLAlchemy Core implementation of SessionStore.

    Usage:
        store = UserStore("sqlite:///sessionwarden.db")
        uid = store.create_user(Principal(username="alice", email="alice@example.com",
                                          fullname="Alice", hashed_password=digest))
        store.get_session_fingerprint(uid)  # None
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("User store schema setup failed: %s", exc)
            raise StoreUnavailable("user store could not be initialized", reason=exc) from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, translating driver failures into StoreUnavailable.

        IntegrityError propagates unchanged; callers decide what a constraint
        violation means.
        """
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("User store unavailable: %s", exc)
            raise StoreUnavailable(reason=exc) from exc

    # ------------------------------------------------------------------
    # Principal queries
    # ------------------------------------------------------------------

    def find_by_id(self, user_id: int) -> Principal | None:
        """Look up a principal by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_principal(row) if row is not None else None

    def find_by_username_or_email(self, identifier: str) -> Principal | None:
        """Look up a principal whose username or email equals identifier.

        Matching is exact; callers pass the normalized (trimmed, lower-cased)
        identifier.
        """
        with self._connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.username == identifier) | (_users.c.email == identifier))
            ).fetchone()
        return _row_to_principal(row) if row is not None else None

    def create_user(self, principal: Principal) -> int:
        """Insert a new principal with no active session and return its id.

        Raises DuplicatePrincipal if the username or email already exists.
        """
        now = _now_iso()
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=principal.username,
                        email=principal.email,
                        fullname=principal.fullname,
                        hashed_password=principal.hashed_password,
                        avatar=principal.avatar,
                        cover_image=principal.cover_image,
                        refresh_fingerprint=None,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicatePrincipal(reason=exc) from exc

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a principal. Returns True if a row was removed."""
        with self._connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def replace_password(self, user_id: int, hashed_password: str) -> bool:
        """Store a new password hash and clear the session record in one UPDATE.

        Returns False if user_id does not exist.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hashed_password, refresh_fingerprint=None, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Session record
    # ------------------------------------------------------------------

    def get_session_fingerprint(self, user_id: int) -> str | None:
        """Return the current refresh fingerprint, or None for NoSession / unknown id."""
        with self._connect() as conn:
            return conn.execute(
                _users.select().with_only_columns(_users.c.refresh_fingerprint).where(_users.c.id == user_id)
            ).scalar()

    def set_session_fingerprint(self, user_id: int, fingerprint: str | None) -> None:
        """Overwrite the session record. Unknown ids are a silent no-op."""
        with self._connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(refresh_fingerprint=fingerprint, updated_at=_now_iso())
            )
            conn.commit()

    def swap_session_fingerprint(self, user_id: int, expected: str, new: str) -> bool:
        """Compare-and-set the session record. Returns True if the write landed."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.refresh_fingerprint == expected))
                .values(refresh_fingerprint=new, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount == 1

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_principal(row) -> Principal:
    return Principal(
        id=row.id,
        username=row.username,
        email=row.email,
        fullname=row.fullname,
        hashed_password=row.hashed_password,
        avatar=row.avatar,
        cover_image=row.cover_image,
        created_at=row.created_at,
    )
