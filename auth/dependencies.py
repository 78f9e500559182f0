"""
auth/dependencies.py -- FastAPI Depends() helpers: the identity resolver.

One authentication method: the session cookie set by login/registration.

  resolve_identity()      -- soft variant, returns None when unauthenticated
  get_current_identity()  -- hard variant, raises Unauthorized (401)
  get_request_context()   -- adds the organization binding; every
                             tenant-scoped route depends on this
  require_writer()        -- get_request_context() + role check (403)

Fail-closed: when any of these raises, FastAPI never calls the wrapped
handler. Store failures (DependencyFailure) propagate unchanged so an outage
is reported as 503 and not mistaken for a logged-out user.

The organization id in RequestContext always comes from the resolved user.
Nothing here reads an organization id from the body, query or path.

Layer rule: no imports from api/ or tenant/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import Identity, RequestContext
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import Forbidden, Unauthorized, ValidationError

_settings = get_settings()


def session_id_from(request: Request) -> str | None:
    return request.cookies.get(_settings.session_cookie_name) or None


def resolve_identity(request: Request) -> Identity | None:
    """Resolve the session cookie to a live session and an existing user.

    Returns None when there is no cookie, the session is unknown or expired,
    or the user was removed after the session was issued.
    """
    session_id = session_id_from(request)
    if session_id is None:
        return None
    sessions: SessionStore = request.app.state.session_store
    user_id = sessions.validate(session_id)
    if user_id is None:
        return None
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(user_id)
    if user is None:
        return None
    return Identity(user=user, session_id=session_id)


def get_current_identity(request: Request) -> Identity:
    """Require a valid session. Raises Unauthorized if there is none.

    Use for account-level routes that do not touch tenant data:
        @router.get("/auth/user")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = resolve_identity(request)
    if identity is None:
        raise Unauthorized()
    return identity


def get_request_context(identity: Identity = Depends(get_current_identity)) -> RequestContext:
    """Bind the request to the caller's organization.

    Users without an organization cannot reach tenant data at all.
    """
    org_id = identity.user.organization_id
    if not org_id:
        raise ValidationError("User is not associated with an organization.", code="no_organization")
    return RequestContext(user=identity.user, organization_id=org_id, session_id=identity.session_id)


def require_writer(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Require a role that may mutate tenant data. Raises Forbidden for read-only users."""
    if not ctx.can_write:
        raise Forbidden()
    return ctx
