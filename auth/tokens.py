"""
auth/tokens.py -- Password hashing, session-id, and cookie utilities.

Security design decisions:
  Passwords: bcrypt, used directly (no passlib wrapper). The cost factor comes
       from Settings.bcrypt_rounds so tests can run at the minimum (4) while
       production keeps 12+. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

  Session ids: secrets.token_urlsafe(32) gives 256 bits of entropy. The raw
       id lives only in the client's cookie. The session store keeps
       HMAC-SHA256(SECRET_KEY, sid), so a leaked sessions table cannot be
       replayed as cookies without also knowing SECRET_KEY. The hash is
       deterministic, so lookup stays a primary-key hit.

  SECRET_KEY: sourced from core.config.get_settings(), which validates it at
       startup.

Layer rule: no imports from api/ or tenant/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("secaudit.auth")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt raises ValueError for passwords over 72 bytes of UTF-8.
    RegisterRequest rejects those before they get here.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash or an over-long password counts as a mismatch
    rather than an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first unknown-email login is not
# measurably slower than later ones.
_DUMMY_HASH: str = hash_password("secaudit_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Returns the User on success, None on any failure. Callers must not tell
    the two failure cases apart in their response.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Session ids
# ---------------------------------------------------------------------------


def generate_session_id() -> str:
    return secrets.token_urlsafe(32)


def hash_session_id(session_id: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, session_id) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        session_id.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, session_id: str, max_age: int) -> None:
    """Write the session id as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only when SECURE_COOKIES=true (the app is served over TLS).
    max_age: the remaining session lifetime, so cookie and row expire together.
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=max(max_age, 0),
        path="/",
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        _settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
