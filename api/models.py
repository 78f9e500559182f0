"""
API request and response models for the SecAudit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tenant/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: camelCase field names on output; input accepts camelCase or
snake_case (populate_by_name). Unknown input fields are ignored -- in
particular a client-supplied organizationId never reaches a store.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tenant.metrics import compliance_percentage
from tenant.models import ASSET_STATUSES, ASSET_TYPES, REPORT_TYPES, SCAN_TYPES, SEVERITIES, VULN_STATUSES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one '@', no whitespace, a dot in the domain part.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt refuses passwords longer than 72 bytes of UTF-8.
PASSWORD_MIN = 6
PASSWORD_MAX_BYTES = 72

Email = Annotated[str, StringConstraints(strip_whitespace=True, pattern=EMAIL_PATTERN, max_length=255)]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class CamelModel(BaseModel):
    """Base for request models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class CredentialsModel(BaseModel):
    """Base for request models that carry a password.

    Strings are not stripped here: a password is hashed exactly as typed.
    Fields that should be trimmed say so in their own type.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CamelResponse(BaseModel):
    """Base for response models built from domain dataclasses."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )

    @classmethod
    def from_domain(cls, obj):
        return cls.model_validate(obj)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


def _value_enum(name: str, values: tuple[str, ...]) -> type[Enum]:
    """A str Enum whose member names and values are the domain's allowed strings."""
    return Enum(name, [(v, v) for v in values], type=str)


AssetTypeEnum = _value_enum("AssetTypeEnum", ASSET_TYPES)
AssetStatusEnum = _value_enum("AssetStatusEnum", ASSET_STATUSES)
ScanTypeEnum = _value_enum("ScanTypeEnum", SCAN_TYPES)
SeverityEnum = _value_enum("SeverityEnum", SEVERITIES)
VulnStatusEnum = _value_enum("VulnStatusEnum", VULN_STATUSES)
ReportTypeEnum = _value_enum("ReportTypeEnum", REPORT_TYPES)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses.

    message duplicates error.message so simple clients can show it directly.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    error: ErrorDetail

    @classmethod
    def build(cls, code: str, message: str, detail: Any = None) -> "ErrorResponse":
        return cls(message=message, error=ErrorDetail(code=code, message=message, detail=detail))


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(CredentialsModel):
    """Request body for POST /api/v1/auth/register."""

    email: Email
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX_BYTES)
    confirm_password: str = Field(max_length=PASSWORD_MAX_BYTES)
    first_name: PersonName
    last_name: PersonName

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class LoginRequest(CredentialsModel):
    """Request body for POST /api/v1/auth/login.

    The password only has to be present. Any wrong value, whatever its
    length, is rejected by authenticate_user with the same 401.
    """

    email: Email
    password: str = Field(min_length=1, max_length=1024)


class ProfileUpdate(CamelModel):
    """Request body for PUT /api/v1/auth/profile. Only fields sent are changed."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)


class UserResponse(CamelResponse):
    """A user as returned to clients. The password hash is never included."""

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    organization_id: Optional[str] = None
    is_email_verified: bool = False
    last_login_at: Optional[str] = None
    created_at: str
    updated_at: str


class OrganizationResponse(CamelResponse):
    id: str
    name: str
    domain: Optional[str] = None
    logo: Optional[str] = None
    timezone: str
    settings: dict = Field(default_factory=dict)
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class AssetCreate(CamelModel):
    """Request body for POST /api/v1/assets."""

    name: str = Field(min_length=1, max_length=255)
    type: AssetTypeEnum
    ip: Optional[str] = Field(default=None, max_length=45)
    domain: Optional[str] = Field(default=None, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    tags: list[str] = Field(default_factory=list, max_length=50)
    metadata: dict = Field(default_factory=dict)
    status: AssetStatusEnum = AssetStatusEnum.active


class AssetUpdate(CamelModel):
    """Request body for PUT /api/v1/assets/{id}. Only fields sent are changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[AssetTypeEnum] = None
    ip: Optional[str] = Field(default=None, max_length=45)
    domain: Optional[str] = Field(default=None, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    tags: Optional[list[str]] = Field(default=None, max_length=50)
    metadata: Optional[dict] = None
    status: Optional[AssetStatusEnum] = None


class AssetResponse(CamelResponse):
    id: int
    organization_id: str
    name: str
    type: str
    ip: Optional[str] = None
    domain: Optional[str] = None
    port: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)
    status: str
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# Scans
# ---------------------------------------------------------------------------


class ScanCreate(CamelModel):
    """Request body for POST /api/v1/scans. Status and creator are set server-side."""

    name: str = Field(min_length=1, max_length=255)
    type: ScanTypeEnum
    asset_id: Optional[int] = None


class ScanJobResponse(CamelResponse):
    id: int
    organization_id: str
    asset_id: Optional[int] = None
    type: str
    name: str
    status: str
    progress: int
    results: dict = Field(default_factory=dict)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_by: str
    created_at: str


# ---------------------------------------------------------------------------
# Vulnerabilities
# ---------------------------------------------------------------------------


class VulnerabilityCreate(CamelModel):
    """Request body for POST /api/v1/vulnerabilities (manually recorded finding)."""

    name: str = Field(min_length=1, max_length=255)
    severity: SeverityEnum
    asset_id: Optional[int] = None
    scan_job_id: Optional[int] = None
    cvss_score: Optional[float] = Field(default=None, ge=0.0, le=10.0)
    description: Optional[str] = Field(default=None, max_length=10_000)
    endpoint: Optional[str] = Field(default=None, max_length=512)
    recommendation: Optional[str] = Field(default=None, max_length=10_000)
    status: VulnStatusEnum = VulnStatusEnum.open


class VulnerabilityUpdate(CamelModel):
    """Request body for PUT /api/v1/vulnerabilities/{id}. Only fields sent are changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    severity: Optional[SeverityEnum] = None
    asset_id: Optional[int] = None
    scan_job_id: Optional[int] = None
    cvss_score: Optional[float] = Field(default=None, ge=0.0, le=10.0)
    description: Optional[str] = Field(default=None, max_length=10_000)
    endpoint: Optional[str] = Field(default=None, max_length=512)
    recommendation: Optional[str] = Field(default=None, max_length=10_000)
    status: Optional[VulnStatusEnum] = None


class VulnerabilityResponse(CamelResponse):
    id: int
    organization_id: str
    asset_id: Optional[int] = None
    scan_job_id: Optional[int] = None
    name: str
    severity: str
    cvss_score: Optional[float] = None
    description: Optional[str] = None
    endpoint: Optional[str] = None
    recommendation: Optional[str] = None
    status: str
    created_at: str
    updated_at: str


# ---------------------------------------------------------------------------
# IAM
# ---------------------------------------------------------------------------


class IamRecordResponse(CamelResponse):
    id: int
    organization_id: str
    scan_job_id: Optional[int] = None
    platform: str
    user_email: str
    role: Optional[str] = None
    mfa_enabled: bool
    last_login: Optional[str] = None
    permissions: list[str] = Field(default_factory=list)
    is_over_privileged: bool
    created_at: str


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


class ComplianceCreate(CamelModel):
    """Request body for POST /api/v1/compliance."""

    framework: str = Field(min_length=1, max_length=50)
    score: int = Field(ge=0)
    max_score: int = Field(gt=0)
    gaps: list = Field(default_factory=list)
    recommendations: list = Field(default_factory=list)
    assessment_date: Optional[datetime] = None


class ComplianceScoreResponse(CamelResponse):
    """A compliance assessment plus its rounded percentage (score / max_score)."""

    id: int
    organization_id: str
    framework: str
    score: int
    max_score: int
    percentage: int = 0
    gaps: list = Field(default_factory=list)
    recommendations: list = Field(default_factory=list)
    assessment_date: str
    created_at: str

    @classmethod
    def from_domain(cls, obj):
        return cls.model_validate({**asdict(obj), "percentage": compliance_percentage(obj)})


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class ReportCreate(CamelModel):
    """Request body for POST /api/v1/reports. Status and author are set server-side."""

    name: str = Field(min_length=1, max_length=255)
    type: ReportTypeEnum
    parameters: dict = Field(default_factory=dict)


class ReportResponse(CamelResponse):
    id: int
    organization_id: str
    name: str
    type: str
    file_url: Optional[str] = None
    status: str
    parameters: dict = Field(default_factory=dict)
    generated_by: str
    created_at: str


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardMetricsResponse(CamelResponse):
    """Response for GET /api/v1/dashboard/metrics."""

    total_assets: int
    critical_vulnerabilities: int
    active_scans: int
    average_compliance_score: int
