"""
auth/sessions.py -- Durable server-side session store with absolute TTL.

Lifecycle of one session:
  created   -- create(user_id) on login or registration
  active    -- validate(sid) returns the user id on each request
  expired   -- expires_at has passed; validate() treats it as absent and
               deletes the row lazily (same approach as a TTL cache get)
  destroyed -- destroy(sid) on logout; idempotent

Expiry is absolute from creation. validate() never extends it.

Rows are keyed by HMAC-SHA256(SECRET_KEY, sid) (see auth/tokens.py), never by
the raw id. The payload column keeps a small JSON blob ({"userId",
"createdAt"}) so the row is self-describing when inspected by an operator.

Failure semantics: any store error is raised as DependencyFailure. It is
never swallowed into "no session" -- a database outage must surface as 503,
not as a surprise logout.

Layer rule: no imports from api/ or tenant/.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable

from sqlalchemy import Column, Float, Index, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.tokens import generate_session_id, hash_session_id
from core.db import make_engine
from core.errors import translate_store_errors

_DEFAULT_TTL = 7 * 24 * 60 * 60  # 7 days in seconds

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("sid_hash", String(64), primary_key=True),  # HMAC-SHA256 hex
    Column("user_id", String(32), nullable=False),
    Column("payload", Text, nullable=False),
    Column("created_at", Float, nullable=False),  # epoch seconds
    Column("expires_at", Float, nullable=False),  # epoch seconds, absolute
    Index("ix_sessions_expires_at", "expires_at"),
    Index("ix_sessions_user_id", "user_id"),
)


class SessionStore:
    """Create, validate and destroy sessions.

    clock is injectable so tests can move time forward without sleeping.

    Usage:
        sessions = SessionStore("sqlite:///secaudit.db", ttl=604800)
        sid, expires_at = sessions.create(user.id)
        user_id = sessions.validate(sid)     # None if unknown or expired
        sessions.destroy(sid)
        sessions.purge_expired()             # call periodically
    """

    def __init__(self, db_url: str, ttl: int = _DEFAULT_TTL, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def create(self, user_id: str) -> tuple[str, float]:
        """Persist a new session for user_id. Returns (raw session id, expires_at)."""
        session_id = generate_session_id()
        created_at = self._clock()
        expires_at = created_at + self.ttl
        payload = json.dumps({"userId": user_id, "createdAt": created_at})
        with translate_store_errors("create", "session"):
            with self.engine.begin() as conn:
                conn.execute(
                    _sessions.insert().values(
                        sid_hash=hash_session_id(session_id),
                        user_id=user_id,
                        payload=payload,
                        created_at=created_at,
                        expires_at=expires_at,
                    )
                )
        return session_id, expires_at

    def validate(self, session_id: str) -> str | None:
        """Return the session's user id, or None if the id is unknown or expired."""
        if not session_id:
            return None
        sid_hash = hash_session_id(session_id)
        with translate_store_errors("validate", "session"):
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(_sessions.c.user_id, _sessions.c.expires_at).where(_sessions.c.sid_hash == sid_hash)
                ).fetchone()
        if row is None:
            return None
        if row.expires_at <= self._clock():
            self._delete(sid_hash)
            return None
        return row.user_id

    def remaining_seconds(self, session_id: str) -> int:
        """Seconds until the session expires (0 if unknown or already expired)."""
        sid_hash = hash_session_id(session_id)
        with translate_store_errors("remaining", "session"):
            with self.engine.connect() as conn:
                expires_at = conn.execute(
                    select(_sessions.c.expires_at).where(_sessions.c.sid_hash == sid_hash)
                ).scalar()
        if expires_at is None:
            return 0
        return max(int(expires_at - self._clock()), 0)

    def destroy(self, session_id: str) -> None:
        """Delete the session. Succeeds whether or not it existed."""
        if not session_id:
            return
        self._delete(hash_session_id(session_id))

    def purge_expired(self) -> int:
        """Delete all expired sessions. Returns number of rows removed."""
        with translate_store_errors("purge", "session"):
            with self.engine.begin() as conn:
                result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= self._clock()))
        return result.rowcount

    def count_for_user(self, user_id: str) -> int:
        """Number of live (unexpired) sessions held by a user."""
        with translate_store_errors("count", "session"):
            with self.engine.connect() as conn:
                result = conn.execute(
                    select(func.count())
                    .select_from(_sessions)
                    .where((_sessions.c.user_id == user_id) & (_sessions.c.expires_at > self._clock()))
                ).scalar()
        return result or 0

    def _delete(self, sid_hash: str) -> None:
        with translate_store_errors("destroy", "session"):
            with self.engine.begin() as conn:
                conn.execute(_sessions.delete().where(_sessions.c.sid_hash == sid_hash))

    def close(self) -> None:
        self.engine.dispose()
