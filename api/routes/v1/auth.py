"""
api/routes/v1/auth.py -- Registration, login and account REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create organization + org_admin; sets session cookie
  POST /api/v1/auth/login      -- password login; sets session cookie
  POST /api/v1/auth/logout     -- destroys the session if any; always 200
  GET  /api/v1/auth/user       -- current user (requires auth)
  PUT  /api/v1/auth/profile    -- update own name / email (requires auth)

Security:
  POST /register and POST /login share the LOGIN_RATE_LIMIT per IP.
  Login failures go through auth.flows.login, which pays the bcrypt cost for
  unknown emails too -- never inline get_by_email() + verify_password().
  Cache-Control: no-store on every response that sets or clears the cookie.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_LIMIT, limiter
from api.models import LoginRequest, MessageResponse, ProfileUpdate, RegisterRequest, UserResponse
from auth import flows
from auth.dependencies import get_current_identity, session_id_from
from auth.models import Identity
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import clear_session_cookie, set_session_cookie
from core.errors import NotFound

# Auth policy:
# - POST /api/v1/auth/register:  public
# - POST /api/v1/auth/login:     public
# - POST /api/v1/auth/logout:    public -- clearing a session needs no valid session
# - GET  /api/v1/auth/user:      requires auth (get_current_identity)
# - PUT  /api/v1/auth/profile:   requires auth (get_current_identity)
router = APIRouter()


def _session_response(grant: flows.SessionGrant, status_code: int) -> JSONResponse:
    """JSON user body plus the session cookie for a freshly issued session."""
    resp = JSONResponse(
        status_code=status_code,
        content=UserResponse.from_domain(grant.user).model_dump(by_alias=True, mode="json"),
    )
    set_session_cookie(resp, grant.session_id, int(grant.expires_at - time.time()))
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new organization with the registrant as its org_admin, and log them in.

    400 email_taken when the email is already registered.
    """
    users: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store
    grant = flows.register(
        users,
        sessions,
        flows.Registration(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
        ),
    )
    return _session_response(grant, 201)


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/login", response_model=UserResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Wrong email and wrong password produce the same 401 invalid_credentials.
    """
    users: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store
    grant = flows.login(users, sessions, body.email, body.password)
    return _session_response(grant, 200)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Destroy the current session (if any) and clear the cookie."""
    sessions: SessionStore = request.app.state.session_store
    flows.logout(sessions, session_id_from(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_session_cookie(resp)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/user", response_model=UserResponse)
def current_user(identity: Identity = Depends(get_current_identity)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_domain(identity.user)


@router.put("/auth/profile", response_model=UserResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
) -> UserResponse:
    """Update the caller's first name, last name or email. Omitted fields are unchanged.

    400 email_taken when the new email belongs to another account.
    """
    users: UserStore = request.app.state.user_store
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        return UserResponse.from_domain(identity.user)
    updated = users.update_user(identity.user.id, **fields)
    if updated is None:
        raise NotFound.entity("user")
    return UserResponse.from_domain(updated)
