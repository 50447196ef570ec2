"""
auth/store.py -- SQLAlchemy Core persistence for user accounts and sessions.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. The session manager never touches SQL directly.

Session model: one scalar refresh_token column per user. Writing it is always
a single UPDATE statement, never read-then-write:
  set_refresh_token()    -- unconditional overwrite (login, logout).
  rotate_refresh_token() -- compare-and-swap on the presented token (refresh).
Two concurrent refreshes with the same token race on the CAS WHERE clause;
exactly one UPDATE matches, the other sees rowcount 0 and is rejected.

Errors:
  IntegrityError on insert (username/email UNIQUE) becomes ConflictError.
  Any other SQLAlchemyError becomes StorageError with the original chained.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, and_, create_engine, event, or_, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.errors import ConflictError, StorageError
from auth.models import UserIdentity

logger = logging.getLogger("accountgate.store")

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
    Column("refresh_token", Text),  # NULL = no active session
    Column("avatar", Text),  # asset URL, never bytes
    Column("cover_image", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_memory_url(db_url: str) -> bool:
    return db_url.startswith("sqlite") and (":memory:" in db_url or "mode=memory" in db_url)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for UserIdentity records.

    Usage:
        store = UserStore("sqlite:///accountgate.db")
        user_id = store.create_user(UserIdentity(username="alice", email="a@x.com", ...))
        user = store.find_user(username="alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        engine_kwargs: dict = {"connect_args": connect_args}
        if _is_memory_url(db_url):
            # One connection for every thread, or the in-memory schema vanishes.
            engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, translating driver failures into StorageError."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("User store unavailable: %s", exc.__class__.__name__)
            raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StorageError:
            return False
        return True

    def exists(self, username: str, email: str) -> bool:
        """Return True if any user already holds this username OR this email."""
        with self._connect() as conn:
            row = conn.execute(
                select(_users.c.id).where(or_(_users.c.username == username, _users.c.email == email)).limit(1)
            ).fetchone()
        return row is not None

    def find_user(self, username: str | None = None, email: str | None = None) -> UserIdentity | None:
        """Look up a user by username, by email, or by both.

        Each supplied value is matched against its own column only, so a
        username that happens to look like an email never answers an email
        lookup. When both are given the same row must hold both.
        """
        clauses = []
        if username:
            clauses.append(_users.c.username == username)
        if email:
            clauses.append(_users.c.email == email)
        if not clauses:
            return None
        with self._connect() as conn:
            row = conn.execute(_users.select().where(and_(*clauses))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> UserIdentity | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[UserIdentity]:
        """Return all users ordered by username."""
        with self._connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def get_password_hash(self, user_id: int) -> str | None:
        with self._connect() as conn:
            return conn.execute(select(_users.c.hashed_password).where(_users.c.id == user_id)).scalar()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: UserIdentity) -> int:
        """Insert a new user and return its assigned database ID.

        The UNIQUE constraints on username and email are the final word: a
        concurrent registration that slipped past exists() surfaces here as
        ConflictError.
        """
        now = _now_iso()
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=user.username,
                        email=user.email,
                        fullname=user.fullname,
                        hashed_password=user.hashed_password,
                        refresh_token=None,
                        avatar=user.avatar,
                        cover_image=user.cover_image,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise ConflictError() from exc

    def set_refresh_token(self, user_id: int, token: str | None) -> bool:
        """Overwrite the active refresh token. None means no active session.

        Returns True if the user row exists.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(refresh_token=token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def rotate_refresh_token(self, user_id: int, expected: str, new: str) -> bool:
        """Replace expected with new only if expected is still the active token.

        Returns False when the stored token has already moved on (rotated by a
        concurrent refresh, replaced by a login, or cleared by logout).
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.refresh_token == expected))
                .values(refresh_token=new, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount == 1

    def set_password_hash(self, user_id: int, new_hash: str, revoke_session: bool = True) -> bool:
        """Store a new password hash, clearing the active session in the same UPDATE."""
        values: dict = {"hashed_password": new_hash, "updated_at": _now_iso()}
        if revoke_session:
            values["refresh_token"] = None
        with self._connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserIdentity:
    return UserIdentity(
        id=row.id,
        username=row.username,
        email=row.email,
        fullname=row.fullname,
        hashed_password=row.hashed_password,
        refresh_token=row.refresh_token,
        avatar=row.avatar,
        cover_image=row.cover_image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
