"""
tenant/models.py -- Domain dataclasses for organization-scoped entities.

These are pure data containers with zero logic. Scoping, status transitions
and aggregation live in tenant/store.py and tenant/metrics.py.

Every entity carries organization_id. It is set by the store from the
organization id it was called with -- whatever value a dataclass arrives with
is overwritten on insert.

id is None before the record is written to the database.
"""

from dataclasses import dataclass, field
from typing import NewType, Optional

# The caller's organization, as resolved from the session. Store methods take
# this as their first argument; a plain str from client input should never be
# passed where an OrganizationId is expected.
OrganizationId = NewType("OrganizationId", str)

ASSET_TYPES = ("web_app", "server", "database", "cloud_service", "network_device")
ASSET_STATUSES = ("active", "inactive", "archived")
SCAN_TYPES = ("vulnerability", "iam", "cloud_config", "asset_discovery")
SEVERITIES = ("critical", "high", "medium", "low", "info")
VULN_STATUSES = ("open", "in_progress", "resolved", "false_positive")
REPORT_TYPES = ("executive", "technical", "compliance")


@dataclass
class Asset:
    """A digital asset registered for auditing (web app, server, ...)."""

    name: str
    type: str  # see ASSET_TYPES
    id: Optional[int] = None
    organization_id: str = ""
    ip: Optional[str] = None
    domain: Optional[str] = None
    port: Optional[int] = None
    tags: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    status: str = "active"  # "active" | "inactive" | "archived"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ScanJob:
    """A requested scan. Execution is done by an external engine via ScanTrigger.

    status moves pending -> running -> completed | failed (pending -> failed
    is allowed for jobs that never started). created_by is the requesting user.
    """

    name: str
    type: str  # see SCAN_TYPES
    created_by: str
    id: Optional[int] = None
    organization_id: str = ""
    asset_id: Optional[int] = None
    status: str = "pending"
    progress: int = 0
    results: dict = field(default_factory=dict)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str = ""


@dataclass
class Vulnerability:
    """A finding, either produced by a scan or recorded manually."""

    name: str
    severity: str  # see SEVERITIES
    id: Optional[int] = None
    organization_id: str = ""
    asset_id: Optional[int] = None
    scan_job_id: Optional[int] = None
    cvss_score: Optional[float] = None
    description: Optional[str] = None
    endpoint: Optional[str] = None
    recommendation: Optional[str] = None
    status: str = "open"  # "open" | "in_progress" | "resolved" | "false_positive"
    created_at: str = ""
    updated_at: str = ""


@dataclass
class IamRecord:
    """One identity observed on a cloud / SaaS platform during an IAM scan."""

    platform: str  # "aws" | "google_workspace" | "microsoft365"
    user_email: str
    id: Optional[int] = None
    organization_id: str = ""
    scan_job_id: Optional[int] = None
    role: Optional[str] = None
    mfa_enabled: bool = False
    last_login: Optional[str] = None
    permissions: list[str] = field(default_factory=list)
    is_over_privileged: bool = False
    created_at: str = ""


@dataclass
class ComplianceScore:
    """An assessment result against one framework (iso_27001, soc2, gdpr, ...)."""

    framework: str
    score: int
    max_score: int
    id: Optional[int] = None
    organization_id: str = ""
    gaps: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    assessment_date: str = ""  # ISO 8601, defaults to insert time
    created_at: str = ""


@dataclass
class Report:
    """A requested report. The artifact is produced by an external ReportTrigger."""

    name: str
    type: str  # see REPORT_TYPES
    generated_by: str
    id: Optional[int] = None
    organization_id: str = ""
    file_url: Optional[str] = None
    status: str = "generating"
    parameters: dict = field(default_factory=dict)
    created_at: str = ""


@dataclass(frozen=True)
class DashboardMetrics:
    total_assets: int
    critical_vulnerabilities: int
    active_scans: int
    average_compliance_score: int
