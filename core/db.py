"""
core/db.py -- SQLAlchemy engine construction shared by every store.

SQLite gets two per-connection tweaks:
  check_same_thread=False -- FastAPI runs sync handlers in a thread pool, so a
      pooled connection may be used from a different thread than created it.
  PRAGMA journal_mode=WAL -- readers proceed without blocking during writes.

Any other URL (e.g. postgresql://...) is passed to create_engine untouched.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode. Set per-connection because SQLite PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO 8601 string.

    timespec is pinned so stored values sort lexicographically in time order.
    """
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def normalize_iso(value: str | datetime) -> str:
    """Convert a client-supplied timestamp to the same fixed-width UTC form as now_iso().

    Naive values are taken as UTC. Raises ValueError for unparseable strings.
    """
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")
