"""
auth/store.py -- SQLAlchemy Core persistence layer for users and organizations.

Pattern: Repository + Data Mapper (same as tenant/store.py).
UserStore is the repository; _row_to_user / _row_to_organization are the
mappers. Route and flow code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Only password hashes are stored. This module never sees a plaintext password.

  UNIQUE(email) is enforced by the database. IntegrityError on insert/update
  is translated to core.errors.Conflict here, so callers never need to import
  sqlalchemy to detect a taken email.

Registration writes the organization and its first user in a single
transaction (register_organization). If the email is taken, the organization
insert is rolled back with it -- no orphan tenants.

Layer rule: no imports from api/ or tenant/.
"""

from __future__ import annotations

import json
import uuid

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Organization, User
from core.db import make_engine, now_iso
from core.errors import Conflict, translate_store_errors

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_organizations = Table(
    "organizations",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("domain", String(255)),
    Column("logo", String(512)),
    Column("timezone", String(64), nullable=False, server_default="UTC"),
    Column("settings", Text),  # JSON object serialized as text
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("first_name", String(255)),
    Column("last_name", String(255)),
    Column("profile_image_url", String(512)),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("organization_id", String(32)),  # logical FK -> organizations.id
    Column("is_email_verified", Integer, nullable=False, server_default="0"),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_users_organization_id", "organization_id"),
)

# Fields update_user() accepts. Anything else is a programming error.
_MUTABLE_USER_FIELDS = frozenset(
    {
        "email",
        "password_hash",
        "first_name",
        "last_name",
        "profile_image_url",
        "role",
        "organization_id",
        "is_email_verified",
        "last_login_at",
    }
)


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Organization entities (the credential store).

    Usage:
        store = UserStore("sqlite:///secaudit.db")
        org, admin = store.register_organization(Organization(name="Acme"), User(email=..., password_hash=...))
        user = store.get_by_email("alice@acme.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with translate_store_errors("ping", "user"):
            with self.engine.connect() as conn:
                conn.execute(select(1)).scalar()
        return True

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    def create_organization(self, org: Organization) -> Organization:
        """Insert a new organization and return it with id and timestamps filled in."""
        with translate_store_errors("create", "organization"):
            with self.engine.begin() as conn:
                org_id = self._insert_organization(conn, org)
        return self.get_organization(org_id)

    def get_organization(self, org_id: str) -> Organization | None:
        with translate_store_errors("get", "organization", org_id):
            with self.engine.connect() as conn:
                row = conn.execute(_organizations.select().where(_organizations.c.id == org_id)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def count_organizations(self) -> int:
        with translate_store_errors("count", "organization"):
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_organizations)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with id and timestamps filled in.

        Raises Conflict if the email already exists.
        """
        try:
            with translate_store_errors("create", "user", user.organization_id):
                with self.engine.begin() as conn:
                    user_id = self._insert_user(conn, user)
        except IntegrityError as exc:
            raise Conflict() from exc
        return self.get_by_id(user_id)

    def register_organization(self, org: Organization, user: User) -> tuple[Organization, User]:
        """Create an organization and bind a new user to it, atomically.

        user.organization_id is overwritten with the new organization's id.
        Raises Conflict if the email is taken; in that case neither row exists.
        """
        try:
            with translate_store_errors("register", "organization"):
                with self.engine.begin() as conn:
                    org_id = self._insert_organization(conn, org)
                    user.organization_id = org_id
                    user_id = self._insert_user(conn, user)
        except IntegrityError as exc:
            user.organization_id = None
            raise Conflict() from exc
        return self.get_organization(org_id), self.get_by_id(user_id)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        with translate_store_errors("get_by_email", "user"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with translate_store_errors("get", "user"):
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> User | None:
        """Update mutable fields on an existing user and stamp updated_at.

        Returns the updated User, or None if user_id was not found.
        Raises Conflict if an email change collides with another account.
        """
        unknown = set(fields) - _MUTABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if "is_email_verified" in fields:
            fields["is_email_verified"] = 1 if fields["is_email_verified"] else 0
        fields["updated_at"] = now_iso()
        try:
            with translate_store_errors("update", "user"):
                with self.engine.begin() as conn:
                    result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        except IntegrityError as exc:
            raise Conflict() from exc
        if result.rowcount == 0:
            return None
        return self.get_by_id(user_id)

    def record_login(self, user_id: str) -> None:
        """Stamp last_login_at after a successful password login."""
        with translate_store_errors("record_login", "user"):
            with self.engine.begin() as conn:
                conn.execute(_users.update().where(_users.c.id == user_id).values(last_login_at=now_iso()))

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Insert helpers (run inside a caller-owned transaction)
    # ------------------------------------------------------------------

    @staticmethod
    def _insert_organization(conn, org: Organization) -> str:
        org_id = org.id or _new_id()
        now = now_iso()
        conn.execute(
            _organizations.insert().values(
                id=org_id,
                name=org.name,
                domain=org.domain,
                logo=org.logo,
                timezone=org.timezone or "UTC",
                settings=json.dumps(org.settings or {}),
                created_at=now,
                updated_at=now,
            )
        )
        return org_id

    @staticmethod
    def _insert_user(conn, user: User) -> str:
        user_id = user.id or _new_id()
        now = now_iso()
        conn.execute(
            _users.insert().values(
                id=user_id,
                email=user.email,
                password_hash=user.password_hash,
                first_name=user.first_name,
                last_name=user.last_name,
                profile_image_url=user.profile_image_url,
                role=user.role,
                organization_id=user.organization_id,
                is_email_verified=1 if user.is_email_verified else 0,
                created_at=now,
                updated_at=now,
            )
        )
        return user_id


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        profile_image_url=row.profile_image_url,
        role=row.role,
        organization_id=row.organization_id,
        is_email_verified=bool(row.is_email_verified),
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_organization(row) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        domain=row.domain,
        logo=row.logo,
        timezone=row.timezone,
        settings=json.loads(row.settings) if row.settings else {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
