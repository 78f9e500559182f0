"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' when the stores answer
  - No authentication required
  - 503 'degraded' when the database probe fails
"""

from __future__ import annotations

from unittest.mock import patch

from core.errors import DependencyFailure


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(new_client):
    """Health endpoint is accessible without a session cookie."""
    resp = new_client().get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_health_reports_database_failure(api_client, stores):
    """A failing database probe turns into 503 with status 'degraded'."""
    _, _, tenant_store = stores
    with patch.object(tenant_store, "ping", side_effect=DependencyFailure()):
        resp = api_client.get("/api/v1/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
