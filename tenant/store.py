"""
tenant/store.py -- SQLAlchemy-backed, organization-scoped persistence layer.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tenant/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TenantStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Tenant isolation rules (every method follows all of them):
  - organization_id is the first positional argument of every method.
  - Creates stamp organization_id from that argument, ignoring whatever the
    dataclass carries.
  - Single-row reads, updates and deletes put BOTH the row id and the
    organization id in the same WHERE clause. A row in another organization is
    indistinguishable from a missing row: the method returns None / False and
    the route answers 404.
  - Parent references (asset_id, scan_job_id) are checked against the same
    organization before they are written. A foreign id raises NotFound.

Ordering: lists are newest-first by created_at (ties by id), except
compliance scores, which are newest-first by assessment_date.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = TenantStore("sqlite:///secaudit.db")
    asset = store.create_asset(org_id, Asset(name="web-01", type="server"))
    store.list_assets(org_id)
    store.get_dashboard_metrics(org_id)
    store.close()
"""

import json
import logging
from typing import Optional

from sqlalchemy import Column, Float, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from core.db import make_engine, normalize_iso, now_iso
from core.errors import NotFound, ValidationError, translate_store_errors
from tenant.metrics import average_compliance_score, latest_per_framework
from tenant.models import (
    Asset,
    ComplianceScore,
    DashboardMetrics,
    IamRecord,
    OrganizationId,
    Report,
    ScanJob,
    Vulnerability,
)

logger = logging.getLogger("secaudit.tenant")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_assets = Table(
    "assets",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("name", String(255), nullable=False),
    Column("type", String(50), nullable=False),
    Column("ip", String(45)),
    Column("domain", String(255)),
    Column("port", Integer),
    Column("tags", Text),  # JSON array serialized as text
    Column("metadata", Text),  # JSON object serialized as text
    Column("status", String(30), nullable=False, server_default="active"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_assets_org", "organization_id"),
)

_scan_jobs = Table(
    "scan_jobs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("asset_id", Integer),
    Column("type", String(50), nullable=False),
    Column("name", String(255), nullable=False),
    Column("status", String(30), nullable=False, server_default="pending"),
    Column("progress", Integer, nullable=False, server_default="0"),
    Column("results", Text),  # JSON object
    Column("started_at", String(32)),
    Column("completed_at", String(32)),
    Column("created_by", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_scan_jobs_org", "organization_id"),
)

_vulnerabilities = Table(
    "vulnerabilities",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("asset_id", Integer),
    Column("scan_job_id", Integer),
    Column("name", String(255), nullable=False),
    Column("severity", String(20), nullable=False),
    Column("cvss_score", Float),
    Column("description", Text),
    Column("endpoint", String(512)),
    Column("recommendation", Text),
    Column("status", String(30), nullable=False, server_default="open"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_vulnerabilities_org", "organization_id"),
)

_iam_records = Table(
    "iam_records",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("scan_job_id", Integer),
    Column("platform", String(50), nullable=False),
    Column("user_email", String(255), nullable=False),
    Column("role", String(255)),
    Column("mfa_enabled", Integer, nullable=False, server_default="0"),
    Column("last_login", String(32)),
    Column("permissions", Text),  # JSON array
    Column("is_over_privileged", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Index("ix_iam_records_org", "organization_id"),
)

_compliance = Table(
    "compliance_scores",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("framework", String(50), nullable=False),
    Column("score", Integer, nullable=False),
    Column("max_score", Integer, nullable=False),
    Column("gaps", Text),  # JSON array
    Column("recommendations", Text),  # JSON array
    Column("assessment_date", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_compliance_org_framework", "organization_id", "framework"),
)

_reports = Table(
    "reports",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("organization_id", String(32), nullable=False),
    Column("name", String(255), nullable=False),
    Column("type", String(50), nullable=False),
    Column("file_url", String(1024)),
    Column("status", String(30), nullable=False, server_default="generating"),
    Column("parameters", Text),  # JSON object
    Column("generated_by", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_reports_org", "organization_id"),
)

# Columns update_*() may touch. Ownership and audit columns are never listed.
_ASSET_MUTABLE = frozenset({"name", "type", "ip", "domain", "port", "tags", "metadata", "status"})
_VULN_MUTABLE = frozenset(
    {"asset_id", "scan_job_id", "name", "severity", "cvss_score", "description", "endpoint", "recommendation", "status"}
)

# ---------------------------------------------------------------------------
# Status workflows
# ---------------------------------------------------------------------------

# running -> running is allowed so engines can report progress.
_SCAN_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"running", "failed"}),
    "running": frozenset({"running", "completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}

_REPORT_TRANSITIONS: dict[str, frozenset[str]] = {
    "generating": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


def _check_transition(table: dict[str, frozenset[str]], entity: str, current: str, new: str) -> None:
    if new not in table:
        raise ValidationError(f"Unknown {entity} status '{new}'.", code="invalid_status")
    if new not in table.get(current, frozenset()):
        raise ValidationError(
            f"Cannot move {entity} from '{current}' to '{new}'.",
            code="invalid_transition",
        )


def _org_row(table: Table, organization_id: str, row_id: int):
    """WHERE clause matching one row of one organization."""
    return (table.c.id == row_id) & (table.c.organization_id == organization_id)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TenantStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Parent reference checks
    # ------------------------------------------------------------------

    @staticmethod
    def _require_in_org(conn, table: Table, entity: str, organization_id: str, row_id: Optional[int]) -> None:
        """Raise NotFound unless row_id is None or belongs to organization_id."""
        if row_id is None:
            return
        found = conn.execute(select(table.c.id).where(_org_row(table, organization_id, row_id))).first()
        if found is None:
            raise NotFound.entity(entity)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def list_assets(self, organization_id: OrganizationId) -> list[Asset]:
        with translate_store_errors("list", "asset", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _assets.select()
                    .where(_assets.c.organization_id == organization_id)
                    .order_by(_assets.c.created_at.desc(), _assets.c.id.desc())
                ).fetchall()
        return [_row_to_asset(r) for r in rows]

    def get_asset(self, organization_id: OrganizationId, asset_id: int) -> Optional[Asset]:
        with translate_store_errors("get", "asset", organization_id):
            with self.engine.connect() as conn:
                row = conn.execute(_assets.select().where(_org_row(_assets, organization_id, asset_id))).fetchone()
        return _row_to_asset(row) if row is not None else None

    def create_asset(self, organization_id: OrganizationId, asset: Asset) -> Asset:
        now = now_iso()
        with translate_store_errors("create", "asset", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _assets.insert().values(
                        organization_id=organization_id,
                        name=asset.name,
                        type=asset.type,
                        ip=asset.ip,
                        domain=asset.domain,
                        port=asset.port,
                        tags=json.dumps(asset.tags),
                        metadata=json.dumps(asset.metadata),
                        status=asset.status,
                        created_at=now,
                        updated_at=now,
                    )
                )
                asset_id = result.inserted_primary_key[0]
        return self.get_asset(organization_id, asset_id)

    def update_asset(self, organization_id: OrganizationId, asset_id: int, **fields) -> Optional[Asset]:
        """Update mutable asset fields. Returns None if the asset is not in this organization."""
        _reject_unknown(fields, _ASSET_MUTABLE, "asset")
        if "tags" in fields:
            fields["tags"] = json.dumps(fields["tags"] or [])
        if "metadata" in fields:
            fields["metadata"] = json.dumps(fields["metadata"] or {})
        fields["updated_at"] = now_iso()
        with translate_store_errors("update", "asset", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _assets.update().where(_org_row(_assets, organization_id, asset_id)).values(**fields)
                )
        if result.rowcount == 0:
            return None
        return self.get_asset(organization_id, asset_id)

    def delete_asset(self, organization_id: OrganizationId, asset_id: int) -> bool:
        """Delete an asset and detach it from this organization's scans and findings.

        Returns False if the asset is not in this organization.
        """
        with translate_store_errors("delete", "asset", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(_assets.delete().where(_org_row(_assets, organization_id, asset_id)))
                if result.rowcount == 0:
                    return False
                for child in (_scan_jobs, _vulnerabilities):
                    conn.execute(
                        child.update()
                        .where((child.c.asset_id == asset_id) & (child.c.organization_id == organization_id))
                        .values(asset_id=None)
                    )
        return True

    # ------------------------------------------------------------------
    # Scan jobs
    # ------------------------------------------------------------------

    def list_scan_jobs(self, organization_id: OrganizationId) -> list[ScanJob]:
        with translate_store_errors("list", "scan_job", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _scan_jobs.select()
                    .where(_scan_jobs.c.organization_id == organization_id)
                    .order_by(_scan_jobs.c.created_at.desc(), _scan_jobs.c.id.desc())
                ).fetchall()
        return [_row_to_scan_job(r) for r in rows]

    def get_scan_job(self, organization_id: OrganizationId, scan_id: int) -> Optional[ScanJob]:
        with translate_store_errors("get", "scan_job", organization_id):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _scan_jobs.select().where(_org_row(_scan_jobs, organization_id, scan_id))
                ).fetchone()
        return _row_to_scan_job(row) if row is not None else None

    def create_scan_job(self, organization_id: OrganizationId, scan: ScanJob) -> ScanJob:
        """Insert a scan job in 'pending' state. Raises NotFound for a foreign asset_id."""
        with translate_store_errors("create", "scan_job", organization_id):
            with self.engine.begin() as conn:
                self._require_in_org(conn, _assets, "asset", organization_id, scan.asset_id)
                result = conn.execute(
                    _scan_jobs.insert().values(
                        organization_id=organization_id,
                        asset_id=scan.asset_id,
                        type=scan.type,
                        name=scan.name,
                        status="pending",
                        progress=0,
                        results=json.dumps(scan.results),
                        created_by=scan.created_by,
                        created_at=now_iso(),
                    )
                )
                scan_id = result.inserted_primary_key[0]
        return self.get_scan_job(organization_id, scan_id)

    def advance_scan_job(
        self,
        organization_id: OrganizationId,
        scan_id: int,
        status: str,
        progress: Optional[int] = None,
        results: Optional[dict] = None,
    ) -> Optional[ScanJob]:
        """Move a scan job along pending -> running -> completed | failed.

        Stamps started_at on the first move to running and completed_at on
        completion or failure. A completed job always reports progress 100.
        Returns None if the job is not in this organization; raises
        ValidationError for an illegal transition.
        """
        current = self.get_scan_job(organization_id, scan_id)
        if current is None:
            return None
        _check_transition(_SCAN_TRANSITIONS, "scan", current.status, status)

        values: dict = {"status": status}
        now = now_iso()
        if status == "running" and current.started_at is None:
            values["started_at"] = now
        if status in ("completed", "failed"):
            values["completed_at"] = now
        if status == "completed":
            values["progress"] = 100
        elif progress is not None:
            values["progress"] = max(0, min(100, progress))
        if results is not None:
            values["results"] = json.dumps(results)

        with translate_store_errors("advance", "scan_job", organization_id):
            with self.engine.begin() as conn:
                # Conditional on the status we validated against, so two
                # concurrent advances cannot both apply.
                result = conn.execute(
                    _scan_jobs.update()
                    .where(_org_row(_scan_jobs, organization_id, scan_id) & (_scan_jobs.c.status == current.status))
                    .values(**values)
                )
        if result.rowcount == 0:
            raise ValidationError("Scan status changed concurrently; retry.", code="invalid_transition")
        logger.info("scan %s org=%s %s -> %s", scan_id, organization_id, current.status, status)
        return self.get_scan_job(organization_id, scan_id)

    # ------------------------------------------------------------------
    # Vulnerabilities
    # ------------------------------------------------------------------

    def list_vulnerabilities(self, organization_id: OrganizationId) -> list[Vulnerability]:
        with translate_store_errors("list", "vulnerability", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _vulnerabilities.select()
                    .where(_vulnerabilities.c.organization_id == organization_id)
                    .order_by(_vulnerabilities.c.created_at.desc(), _vulnerabilities.c.id.desc())
                ).fetchall()
        return [_row_to_vulnerability(r) for r in rows]

    def get_vulnerability(self, organization_id: OrganizationId, vuln_id: int) -> Optional[Vulnerability]:
        with translate_store_errors("get", "vulnerability", organization_id):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _vulnerabilities.select().where(_org_row(_vulnerabilities, organization_id, vuln_id))
                ).fetchone()
        return _row_to_vulnerability(row) if row is not None else None

    def create_vulnerability(self, organization_id: OrganizationId, vuln: Vulnerability) -> Vulnerability:
        """Insert a finding. Raises NotFound if asset_id or scan_job_id is foreign."""
        now = now_iso()
        with translate_store_errors("create", "vulnerability", organization_id):
            with self.engine.begin() as conn:
                self._require_in_org(conn, _assets, "asset", organization_id, vuln.asset_id)
                self._require_in_org(conn, _scan_jobs, "scan_job", organization_id, vuln.scan_job_id)
                result = conn.execute(
                    _vulnerabilities.insert().values(
                        organization_id=organization_id,
                        asset_id=vuln.asset_id,
                        scan_job_id=vuln.scan_job_id,
                        name=vuln.name,
                        severity=vuln.severity,
                        cvss_score=vuln.cvss_score,
                        description=vuln.description,
                        endpoint=vuln.endpoint,
                        recommendation=vuln.recommendation,
                        status=vuln.status,
                        created_at=now,
                        updated_at=now,
                    )
                )
                vuln_id = result.inserted_primary_key[0]
        return self.get_vulnerability(organization_id, vuln_id)

    def update_vulnerability(self, organization_id: OrganizationId, vuln_id: int, **fields) -> Optional[Vulnerability]:
        """Update mutable finding fields. Returns None if the finding is not in this organization."""
        _reject_unknown(fields, _VULN_MUTABLE, "vulnerability")
        fields["updated_at"] = now_iso()
        with translate_store_errors("update", "vulnerability", organization_id):
            with self.engine.begin() as conn:
                exists = conn.execute(
                    select(_vulnerabilities.c.id).where(_org_row(_vulnerabilities, organization_id, vuln_id))
                ).first()
                if exists is None:
                    return None
                self._require_in_org(conn, _assets, "asset", organization_id, fields.get("asset_id"))
                self._require_in_org(conn, _scan_jobs, "scan_job", organization_id, fields.get("scan_job_id"))
                conn.execute(
                    _vulnerabilities.update()
                    .where(_org_row(_vulnerabilities, organization_id, vuln_id))
                    .values(**fields)
                )
        return self.get_vulnerability(organization_id, vuln_id)

    # ------------------------------------------------------------------
    # IAM records
    # ------------------------------------------------------------------

    def list_iam_records(self, organization_id: OrganizationId) -> list[IamRecord]:
        with translate_store_errors("list", "iam_record", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _iam_records.select()
                    .where(_iam_records.c.organization_id == organization_id)
                    .order_by(_iam_records.c.created_at.desc(), _iam_records.c.id.desc())
                ).fetchall()
        return [_row_to_iam_record(r) for r in rows]

    def create_iam_record(self, organization_id: OrganizationId, record: IamRecord) -> IamRecord:
        with translate_store_errors("create", "iam_record", organization_id):
            with self.engine.begin() as conn:
                self._require_in_org(conn, _scan_jobs, "scan_job", organization_id, record.scan_job_id)
                result = conn.execute(
                    _iam_records.insert().values(
                        organization_id=organization_id,
                        scan_job_id=record.scan_job_id,
                        platform=record.platform,
                        user_email=record.user_email,
                        role=record.role,
                        mfa_enabled=1 if record.mfa_enabled else 0,
                        last_login=record.last_login,
                        permissions=json.dumps(record.permissions),
                        is_over_privileged=1 if record.is_over_privileged else 0,
                        created_at=now_iso(),
                    )
                )
                record_id = result.inserted_primary_key[0]
            with self.engine.connect() as conn:
                row = conn.execute(
                    _iam_records.select().where(_org_row(_iam_records, organization_id, record_id))
                ).fetchone()
        return _row_to_iam_record(row)

    # ------------------------------------------------------------------
    # Compliance scores
    # ------------------------------------------------------------------

    def list_compliance_scores(self, organization_id: OrganizationId) -> list[ComplianceScore]:
        """All assessments for the organization, newest assessment first."""
        with translate_store_errors("list", "compliance_score", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _compliance.select()
                    .where(_compliance.c.organization_id == organization_id)
                    .order_by(_compliance.c.assessment_date.desc(), _compliance.c.id.desc())
                ).fetchall()
        return [_row_to_compliance(r) for r in rows]

    def get_latest_compliance_score(self, organization_id: OrganizationId, framework: str) -> Optional[ComplianceScore]:
        with translate_store_errors("latest", "compliance_score", organization_id):
            with self.engine.connect() as conn:
                row = conn.execute(
                    _compliance.select()
                    .where((_compliance.c.organization_id == organization_id) & (_compliance.c.framework == framework))
                    .order_by(_compliance.c.assessment_date.desc(), _compliance.c.id.desc())
                    .limit(1)
                ).fetchone()
        return _row_to_compliance(row) if row is not None else None

    def list_latest_compliance_scores(self, organization_id: OrganizationId) -> list[ComplianceScore]:
        """One row per framework: the most recent assessment (ties -> highest id)."""
        return latest_per_framework(self.list_compliance_scores(organization_id))

    def create_compliance_score(self, organization_id: OrganizationId, score: ComplianceScore) -> ComplianceScore:
        now = now_iso()
        try:
            assessment_date = normalize_iso(score.assessment_date) if score.assessment_date else now
        except ValueError as exc:
            raise ValidationError("assessment_date is not a valid ISO 8601 timestamp.") from exc
        with translate_store_errors("create", "compliance_score", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _compliance.insert().values(
                        organization_id=organization_id,
                        framework=score.framework,
                        score=score.score,
                        max_score=score.max_score,
                        gaps=json.dumps(score.gaps),
                        recommendations=json.dumps(score.recommendations),
                        assessment_date=assessment_date,
                        created_at=now,
                    )
                )
                score_id = result.inserted_primary_key[0]
            with self.engine.connect() as conn:
                row = conn.execute(
                    _compliance.select().where(_org_row(_compliance, organization_id, score_id))
                ).fetchone()
        return _row_to_compliance(row)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def list_reports(self, organization_id: OrganizationId) -> list[Report]:
        with translate_store_errors("list", "report", organization_id):
            with self.engine.connect() as conn:
                rows = conn.execute(
                    _reports.select()
                    .where(_reports.c.organization_id == organization_id)
                    .order_by(_reports.c.created_at.desc(), _reports.c.id.desc())
                ).fetchall()
        return [_row_to_report(r) for r in rows]

    def get_report(self, organization_id: OrganizationId, report_id: int) -> Optional[Report]:
        with translate_store_errors("get", "report", organization_id):
            with self.engine.connect() as conn:
                row = conn.execute(_reports.select().where(_org_row(_reports, organization_id, report_id))).fetchone()
        return _row_to_report(row) if row is not None else None

    def create_report(self, organization_id: OrganizationId, report: Report) -> Report:
        """Insert a report request in 'generating' state."""
        with translate_store_errors("create", "report", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _reports.insert().values(
                        organization_id=organization_id,
                        name=report.name,
                        type=report.type,
                        file_url=None,
                        status="generating",
                        parameters=json.dumps(report.parameters),
                        generated_by=report.generated_by,
                        created_at=now_iso(),
                    )
                )
                report_id = result.inserted_primary_key[0]
        return self.get_report(organization_id, report_id)

    def advance_report(
        self,
        organization_id: OrganizationId,
        report_id: int,
        status: str,
        file_url: Optional[str] = None,
    ) -> Optional[Report]:
        """Move a report from generating to completed | failed.

        Returns None if the report is not in this organization; raises
        ValidationError for an illegal transition.
        """
        current = self.get_report(organization_id, report_id)
        if current is None:
            return None
        _check_transition(_REPORT_TRANSITIONS, "report", current.status, status)
        values: dict = {"status": status}
        if file_url is not None:
            values["file_url"] = file_url
        with translate_store_errors("advance", "report", organization_id):
            with self.engine.begin() as conn:
                result = conn.execute(
                    _reports.update()
                    .where(_org_row(_reports, organization_id, report_id) & (_reports.c.status == current.status))
                    .values(**values)
                )
        if result.rowcount == 0:
            raise ValidationError("Report status changed concurrently; retry.", code="invalid_transition")
        return self.get_report(organization_id, report_id)

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_dashboard_metrics(self, organization_id: OrganizationId) -> DashboardMetrics:
        """Counts plus the average of the latest compliance percentage per framework."""

        def _count(conn, table: Table, condition=None) -> int:
            where = table.c.organization_id == organization_id
            if condition is not None:
                where = where & condition
            return conn.execute(select(func.count()).select_from(table).where(where)).scalar() or 0

        with translate_store_errors("metrics", "dashboard", organization_id):
            with self.engine.connect() as conn:
                total_assets = _count(conn, _assets)
                critical = _count(
                    conn,
                    _vulnerabilities,
                    (_vulnerabilities.c.severity == "critical") & (_vulnerabilities.c.status == "open"),
                )
                active_scans = _count(conn, _scan_jobs, _scan_jobs.c.status == "running")

        latest = self.list_latest_compliance_scores(organization_id)
        return DashboardMetrics(
            total_assets=total_assets,
            critical_vulnerabilities=critical,
            active_scans=active_scans,
            average_compliance_score=average_compliance_score(latest),
        )

    def ping(self) -> bool:
        with translate_store_errors("ping", "tenant"):
            with self.engine.connect() as conn:
                conn.execute(select(1)).scalar()
        return True

    def close(self) -> None:
        self.engine.dispose()


def _reject_unknown(fields: dict, allowed: frozenset[str], entity: str) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown {entity} fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _loads(raw: Optional[str], default):
    return json.loads(raw) if raw else default


def _row_to_asset(row) -> Asset:
    return Asset(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        type=row.type,
        ip=row.ip,
        domain=row.domain,
        port=row.port,
        tags=_loads(row.tags, []),
        metadata=_loads(row.metadata, {}),
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_scan_job(row) -> ScanJob:
    return ScanJob(
        id=row.id,
        organization_id=row.organization_id,
        asset_id=row.asset_id,
        type=row.type,
        name=row.name,
        status=row.status,
        progress=row.progress,
        results=_loads(row.results, {}),
        started_at=row.started_at,
        completed_at=row.completed_at,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _row_to_vulnerability(row) -> Vulnerability:
    return Vulnerability(
        id=row.id,
        organization_id=row.organization_id,
        asset_id=row.asset_id,
        scan_job_id=row.scan_job_id,
        name=row.name,
        severity=row.severity,
        cvss_score=row.cvss_score,
        description=row.description,
        endpoint=row.endpoint,
        recommendation=row.recommendation,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_iam_record(row) -> IamRecord:
    return IamRecord(
        id=row.id,
        organization_id=row.organization_id,
        scan_job_id=row.scan_job_id,
        platform=row.platform,
        user_email=row.user_email,
        role=row.role,
        mfa_enabled=bool(row.mfa_enabled),
        last_login=row.last_login,
        permissions=_loads(row.permissions, []),
        is_over_privileged=bool(row.is_over_privileged),
        created_at=row.created_at,
    )


def _row_to_compliance(row) -> ComplianceScore:
    return ComplianceScore(
        id=row.id,
        organization_id=row.organization_id,
        framework=row.framework,
        score=row.score,
        max_score=row.max_score,
        gaps=_loads(row.gaps, []),
        recommendations=_loads(row.recommendations, []),
        assessment_date=row.assessment_date,
        created_at=row.created_at,
    )


def _row_to_report(row) -> Report:
    return Report(
        id=row.id,
        organization_id=row.organization_id,
        name=row.name,
        type=row.type,
        file_url=row.file_url,
        status=row.status,
        parameters=_loads(row.parameters, {}),
        generated_by=row.generated_by,
        created_at=row.created_at,
    )
