"""
tests/test_identity.py -- Identity resolver behaviour (auth/dependencies.py).

Covers the failure modes that are hard to reach through normal flows:
  - a valid session whose user no longer exists -> 401
  - an expired session -> 401
  - session or user store unavailable -> 503, never 401
  - RequestContext is immutable and carries the user's organization
"""

from __future__ import annotations

import dataclasses
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from auth.dependencies import get_request_context, require_writer, resolve_identity
from auth.models import Identity, RequestContext, User
from conftest import register_user
from core.errors import DependencyFailure, Forbidden, ValidationError


def _request(cookies: dict, session_store, user_store):
    """Minimal stand-in for a Starlette Request: cookies + app.state."""
    state = SimpleNamespace(session_store=session_store, user_store=user_store)
    return SimpleNamespace(cookies=cookies, app=SimpleNamespace(state=state))


class TestResolveIdentity:
    def test_no_cookie(self) -> None:
        sessions = MagicMock()
        assert resolve_identity(_request({}, sessions, MagicMock())) is None
        sessions.validate.assert_not_called()

    def test_unknown_session(self) -> None:
        sessions = MagicMock()
        sessions.validate.return_value = None
        assert resolve_identity(_request({"sid": "x"}, sessions, MagicMock())) is None

    def test_deleted_user_is_unauthenticated(self) -> None:
        sessions = MagicMock()
        sessions.validate.return_value = "user-1"
        users = MagicMock()
        users.get_by_id.return_value = None
        assert resolve_identity(_request({"sid": "x"}, sessions, users)) is None

    def test_resolves_user(self) -> None:
        user = User(email="a@b.io", password_hash="h", id="user-1", organization_id="org-1")
        sessions = MagicMock()
        sessions.validate.return_value = "user-1"
        users = MagicMock()
        users.get_by_id.return_value = user
        identity = resolve_identity(_request({"sid": "x"}, sessions, users))
        assert identity == Identity(user=user, session_id="x")

    def test_store_failure_propagates(self) -> None:
        sessions = MagicMock()
        sessions.validate.side_effect = DependencyFailure()
        with pytest.raises(DependencyFailure):
            resolve_identity(_request({"sid": "x"}, sessions, MagicMock()))


class TestRequestContext:
    def test_context_binds_user_organization(self) -> None:
        user = User(email="a@b.io", password_hash="h", id="u1", organization_id="org-9", role="auditor")
        ctx = get_request_context(Identity(user=user, session_id="s"))
        assert ctx.organization_id == "org-9"
        assert ctx.user_id == "u1"
        assert ctx.can_write

    def test_context_is_immutable(self) -> None:
        user = User(email="a@b.io", password_hash="h", id="u1", organization_id="org-9")
        ctx = get_request_context(Identity(user=user, session_id="s"))
        with pytest.raises(dataclasses.FrozenInstanceError):
            ctx.organization_id = "org-other"

    def test_user_without_organization(self) -> None:
        user = User(email="a@b.io", password_hash="h", id="u1")
        with pytest.raises(ValidationError) as excinfo:
            get_request_context(Identity(user=user, session_id="s"))
        assert excinfo.value.code == "no_organization"

    @pytest.mark.parametrize("role", ["super_admin", "org_admin", "auditor"])
    def test_writer_roles(self, role: str) -> None:
        user = User(email="a@b.io", password_hash="h", id="u1", organization_id="o", role=role)
        ctx = RequestContext(user=user, organization_id="o", session_id="s")
        assert require_writer(ctx) is ctx

    def test_user_role_is_read_only(self) -> None:
        user = User(email="a@b.io", password_hash="h", id="u1", organization_id="o", role="user")
        with pytest.raises(Forbidden):
            require_writer(RequestContext(user=user, organization_id="o", session_id="s"))


class TestThroughApi:
    def test_expired_session_is_401(self, new_client, stores) -> None:
        _, session_store, _ = stores
        client = new_client()
        register_user(client)
        with patch.object(session_store, "_clock", lambda: 4_000_000_000.0):
            resp = client.get("/api/v1/assets")
        assert resp.status_code == 401

    def test_session_store_outage_is_503(self, new_client, stores) -> None:
        _, session_store, _ = stores
        client = new_client()
        register_user(client)
        with patch.object(session_store, "validate", side_effect=DependencyFailure()):
            resp = client.get("/api/v1/assets")
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "dependency_failure"

    def test_user_store_outage_is_503(self, new_client, stores) -> None:
        user_store, _, _ = stores
        client = new_client()
        register_user(client)
        with patch.object(user_store, "get_by_id", side_effect=DependencyFailure()):
            resp = client.get("/api/v1/auth/user")
        assert resp.status_code == 503
