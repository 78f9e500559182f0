"""
auth/flows.py -- Registration, login and logout orchestration.

These functions hold the business rules of the account lifecycle so that the
route handlers in api/routes/v1/auth.py stay thin. Input shape (email format,
password length, confirmation match) is validated by the Pydantic request
models before any of this runs.

Registration:
  email taken -> Conflict
  organization name from the registrant's name, domain from the email
  organization + org_admin user in one transaction -> session

Login:
  unknown email and wrong password both raise the same InvalidCredentials,
  and both pay the same bcrypt cost (see authenticate_user).

Logout:
  destroys the session if one was presented; never fails on a missing one.

Layer rule: no imports from api/ or tenant/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from auth.models import Organization, User
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import authenticate_user, hash_password
from core.errors import Conflict, InvalidCredentials

logger = logging.getLogger("secaudit.auth")


@dataclass(frozen=True)
class Registration:
    email: str
    password: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class SessionGrant:
    """A freshly authenticated user together with the session issued for it."""

    user: User
    session_id: str
    expires_at: float


def email_domain(email: str) -> str:
    """Everything after the '@' of an email address."""
    return email.partition("@")[2]


def organization_name_for(first_name: str, last_name: str) -> str:
    full_name = f"{first_name} {last_name}".strip()
    return f"{full_name}'s Organization"


def register(users: UserStore, sessions: SessionStore, payload: Registration) -> SessionGrant:
    """Create a tenant with its first admin and log that admin in."""
    if users.get_by_email(payload.email) is not None:
        raise Conflict()

    org = Organization(
        name=organization_name_for(payload.first_name, payload.last_name),
        domain=email_domain(payload.email),
    )
    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role="org_admin",
    )
    # A concurrent registration can still win the race between the lookup
    # above and this insert; register_organization raises Conflict for it.
    org, user = users.register_organization(org, user)
    logger.info("registered organization %s (domain=%s)", org.id, org.domain)

    session_id, expires_at = sessions.create(user.id)
    return SessionGrant(user=user, session_id=session_id, expires_at=expires_at)


def login(users: UserStore, sessions: SessionStore, email: str, password: str) -> SessionGrant:
    """Verify credentials and open a new session."""
    user = authenticate_user(users, email, password)
    if user is None:
        logger.info("login failed (domain=%s)", email_domain(email) or "-")
        raise InvalidCredentials()

    users.record_login(user.id)
    session_id, expires_at = sessions.create(user.id)
    logger.info("login ok user=%s org=%s", user.id, user.organization_id)
    return SessionGrant(user=user, session_id=session_id, expires_at=expires_at)


def logout(sessions: SessionStore, session_id: str | None) -> None:
    if session_id:
        sessions.destroy(session_id)
