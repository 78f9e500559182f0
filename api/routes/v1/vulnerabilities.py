"""
api/routes/v1/vulnerabilities.py -- Vulnerability findings routes.

Routes:
  GET  /vulnerabilities             -- list the caller's findings, newest first
  POST /vulnerabilities             -- record a finding manually (writer roles)
  GET  /vulnerabilities/{vuln_id}   -- one finding
  PUT  /vulnerabilities/{vuln_id}   -- partial update, e.g. status triage (writer roles)

assetId / scanJobId in a body must name rows of the caller's own
organization; otherwise the request fails with 404.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import VulnerabilityCreate, VulnerabilityResponse, VulnerabilityUpdate
from auth.dependencies import get_current_identity, get_request_context, require_writer
from auth.models import RequestContext
from core.errors import NotFound
from tenant.models import Vulnerability
from tenant.store import TenantStore

router = APIRouter(dependencies=[Depends(get_current_identity)])

_NOT_NULL = ("name", "severity", "status")


@limiter.limit("60/minute")
@router.get("/vulnerabilities", response_model=list[VulnerabilityResponse])
def list_vulnerabilities(
    request: Request, ctx: RequestContext = Depends(get_request_context)
) -> list[VulnerabilityResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [VulnerabilityResponse.from_domain(v) for v in store.list_vulnerabilities(ctx.organization_id)]


@limiter.limit("30/minute")
@router.post("/vulnerabilities", response_model=VulnerabilityResponse, status_code=201)
def create_vulnerability(
    request: Request,
    body: VulnerabilityCreate,
    ctx: RequestContext = Depends(require_writer),
) -> VulnerabilityResponse:
    store: TenantStore = request.app.state.tenant_store
    vuln = Vulnerability(
        name=body.name,
        severity=body.severity.value,
        asset_id=body.asset_id,
        scan_job_id=body.scan_job_id,
        cvss_score=body.cvss_score,
        description=body.description,
        endpoint=body.endpoint,
        recommendation=body.recommendation,
        status=body.status.value,
    )
    return VulnerabilityResponse.from_domain(store.create_vulnerability(ctx.organization_id, vuln))


@router.get("/vulnerabilities/{vuln_id}", response_model=VulnerabilityResponse)
def get_vulnerability(
    request: Request, vuln_id: int, ctx: RequestContext = Depends(get_request_context)
) -> VulnerabilityResponse:
    store: TenantStore = request.app.state.tenant_store
    vuln = store.get_vulnerability(ctx.organization_id, vuln_id)
    if vuln is None:
        raise NotFound.entity("vulnerability")
    return VulnerabilityResponse.from_domain(vuln)


@router.put("/vulnerabilities/{vuln_id}", response_model=VulnerabilityResponse)
def update_vulnerability(
    request: Request,
    vuln_id: int,
    body: VulnerabilityUpdate,
    ctx: RequestContext = Depends(require_writer),
) -> VulnerabilityResponse:
    """Change the fields present in the body. An explicit null assetId detaches the finding."""
    store: TenantStore = request.app.state.tenant_store
    fields = {
        k: v for k, v in body.model_dump(exclude_unset=True, mode="json").items() if v is not None or k not in _NOT_NULL
    }
    updated = store.update_vulnerability(ctx.organization_id, vuln_id, **fields)
    if updated is None:
        raise NotFound.entity("vulnerability")
    return VulnerabilityResponse.from_domain(updated)
