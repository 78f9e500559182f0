"""
tests/test_tenant_isolation.py -- Cross-organization access through the HTTP API.

Two organizations (alice's and bob's) are registered through the API. Every
test checks that bob can neither see nor change alice's data, and that the
answer for a foreign id is the same 404 as for a missing id.

Also covers the role rule: a read-only "user" member of an organization can
list but not mutate.
"""

from __future__ import annotations

import pytest

from auth.models import User
from auth.tokens import hash_password
from conftest import PASSWORD, register_user, unique_email


@pytest.fixture
def tenants(new_client):
    """(alice_client, bob_client), each logged in to its own new organization."""
    alice, bob = new_client(), new_client()
    register_user(alice, first_name="Alice", last_name="A")
    register_user(bob, first_name="Bob", last_name="B")
    return alice, bob


def _create_asset(client, name="alice-web") -> dict:
    resp = client.post("/api/v1/assets", json={"name": name, "type": "web_app"})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAssetIsolation:
    def test_list_only_shows_own_assets(self, tenants) -> None:
        alice, bob = tenants
        _create_asset(alice)
        assert bob.get("/api/v1/assets").json() == []
        assert len(alice.get("/api/v1/assets").json()) == 1

    def test_foreign_asset_is_not_found(self, tenants) -> None:
        alice, bob = tenants
        asset = _create_asset(alice)
        foreign = bob.get(f"/api/v1/assets/{asset['id']}")
        missing = bob.get("/api/v1/assets/999999")
        assert foreign.status_code == 404
        assert foreign.json() == missing.json(), "Foreign and missing ids must be indistinguishable"
        assert foreign.json()["error"]["code"] == "asset_not_found"

    def test_foreign_asset_cannot_be_updated_or_deleted(self, tenants) -> None:
        alice, bob = tenants
        asset = _create_asset(alice)
        assert bob.put(f"/api/v1/assets/{asset['id']}", json={"name": "pwned"}).status_code == 404
        assert bob.delete(f"/api/v1/assets/{asset['id']}").status_code == 404
        assert alice.get(f"/api/v1/assets/{asset['id']}").json()["name"] == "alice-web"

    def test_body_organization_id_is_ignored(self, tenants) -> None:
        """A client-supplied organizationId must not redirect the write."""
        alice, bob = tenants
        alice_org = alice.get("/api/v1/organization").json()["id"]
        resp = bob.post(
            "/api/v1/assets",
            json={"name": "sneaky", "type": "server", "organizationId": alice_org},
        )
        assert resp.status_code == 201
        assert resp.json()["organizationId"] != alice_org
        assert all(a["name"] != "sneaky" for a in alice.get("/api/v1/assets").json())


class TestParentReferenceIsolation:
    def test_scan_on_foreign_asset_is_not_found(self, tenants) -> None:
        alice, bob = tenants
        asset = _create_asset(alice)
        resp = bob.post("/api/v1/scans", json={"name": "probe", "type": "vulnerability", "assetId": asset["id"]})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "asset_not_found"
        assert bob.get("/api/v1/scans").json() == []

    def test_vulnerability_on_foreign_scan_is_not_found(self, tenants) -> None:
        alice, bob = tenants
        scan = alice.post("/api/v1/scans", json={"name": "s", "type": "iam"}).json()
        resp = bob.post("/api/v1/vulnerabilities", json={"name": "x", "severity": "low", "scanJobId": scan["id"]})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "scan_job_not_found"


class TestOtherResourcesIsolation:
    def test_scans_vulns_reports_compliance_are_scoped(self, tenants) -> None:
        alice, bob = tenants
        scan = alice.post("/api/v1/scans", json={"name": "s", "type": "vulnerability"}).json()
        vuln = alice.post("/api/v1/vulnerabilities", json={"name": "XSS", "severity": "critical"}).json()
        alice.post("/api/v1/reports", json={"name": "Q1", "type": "executive"})
        alice.post("/api/v1/compliance", json={"framework": "soc2", "score": 50, "maxScore": 100})

        assert bob.get(f"/api/v1/scans/{scan['id']}").status_code == 404
        assert bob.get(f"/api/v1/vulnerabilities/{vuln['id']}").status_code == 404
        assert bob.put(f"/api/v1/vulnerabilities/{vuln['id']}", json={"status": "resolved"}).status_code == 404
        for path in ("/api/v1/scans", "/api/v1/vulnerabilities", "/api/v1/reports", "/api/v1/compliance", "/api/v1/iam-records"):
            assert bob.get(path).json() == [], f"{path} leaked another organization's rows"

    def test_dashboard_counts_only_own_data(self, tenants) -> None:
        alice, bob = tenants
        _create_asset(alice)
        alice.post("/api/v1/vulnerabilities", json={"name": "RCE", "severity": "critical"})
        metrics = bob.get("/api/v1/dashboard/metrics").json()
        assert metrics == {
            "totalAssets": 0,
            "criticalVulnerabilities": 0,
            "activeScans": 0,
            "averageComplianceScore": 0,
        }


class TestReadOnlyRole:
    @pytest.fixture
    def member(self, new_client, stores):
        """A 'user'-role account in a freshly registered organization, logged in."""
        user_store, _, _ = stores
        admin = new_client()
        org_id = register_user(admin)["organizationId"]
        email = unique_email("member")
        user_store.create_user(
            User(email=email, password_hash=hash_password(PASSWORD), role="user", organization_id=org_id)
        )
        client = new_client()
        assert client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD}).status_code == 200
        return admin, client

    def test_reads_allowed(self, member) -> None:
        admin, client = member
        _create_asset(admin, "shared")
        assert [a["name"] for a in client.get("/api/v1/assets").json()] == ["shared"]
        assert client.get("/api/v1/dashboard/metrics").status_code == 200

    def test_mutations_forbidden(self, member) -> None:
        admin, client = member
        asset = _create_asset(admin, "shared")
        attempts = [
            client.post("/api/v1/assets", json={"name": "x", "type": "server"}),
            client.put(f"/api/v1/assets/{asset['id']}", json={"name": "y"}),
            client.delete(f"/api/v1/assets/{asset['id']}"),
            client.post("/api/v1/scans", json={"name": "s", "type": "iam"}),
            client.post("/api/v1/reports", json={"name": "r", "type": "technical"}),
        ]
        for resp in attempts:
            assert resp.status_code == 403, resp.text
            assert resp.json()["error"]["code"] == "forbidden"
        assert admin.get(f"/api/v1/assets/{asset['id']}").json()["name"] == "shared"


class TestNoOrganization:
    def test_user_without_organization_gets_400(self, new_client, stores) -> None:
        user_store, _, _ = stores
        email = unique_email("orphan")
        user_store.create_user(User(email=email, password_hash=hash_password(PASSWORD), role="auditor"))
        client = new_client()
        assert client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD}).status_code == 200
        resp = client.get("/api/v1/assets")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "no_organization"
        # Account-level routes still work.
        assert client.get("/api/v1/auth/user").status_code == 200
