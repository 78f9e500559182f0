"""
auth/models.py -- Domain dataclasses for identity entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in tenant/models.py -- dataclasses own domain shape; stores and routes do the
work.

Layer rule: no imports from api/ or tenant/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


# Roles allowed to create, update and delete tenant data. "user" is read-only.
WRITER_ROLES: frozenset[str] = frozenset({"super_admin", "org_admin", "auditor"})


@dataclass
class Organization:
    """A tenant. Owns its users and every tenant-scoped entity by reference.

    id is an opaque UUID hex string assigned by the store on insert. Never
    deleted in normal flow.
    """

    name: str
    id: Optional[str] = None
    domain: Optional[str] = None
    logo: Optional[str] = None
    timezone: str = "UTC"
    settings: dict = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""


@dataclass
class User:
    """An account bound to (at most) one organization.

    email is globally unique and compared exactly as stored (case-sensitive).
    password_hash is a bcrypt hash; the plaintext never reaches this object.
    organization_id is None only for accounts that have not been assigned yet;
    every tenant-scoped route refuses such users.
    """

    email: str
    password_hash: str
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str = "user"  # "super_admin" | "org_admin" | "auditor" | "user"
    organization_id: Optional[str] = None
    is_email_verified: bool = False
    last_login_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Identity:
    """A validated session resolved to its user. Built once per request."""

    user: User
    session_id: str


@dataclass(frozen=True)
class RequestContext:
    """Immutable per-request tenant binding produced by the identity resolver.

    organization_id comes from the resolved user, never from client input.
    Every tenant-scoped store call receives it from here.
    """

    user: User
    organization_id: str
    session_id: str

    @property
    def user_id(self) -> str:
        return self.user.id or ""

    @property
    def can_write(self) -> bool:
        return self.user.role in WRITER_ROLES
