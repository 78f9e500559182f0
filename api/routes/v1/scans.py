"""
api/routes/v1/scans.py -- Scan job routes.

Routes:
  GET  /scans            -- list the caller's scan jobs, newest first
  POST /scans            -- request a scan (writer roles)
  GET  /scans/{scan_id}  -- one scan job

Creating a scan stores it as 'pending' with createdBy set to the caller, then
hands it to the configured ScanTrigger. Execution happens outside this
process; if the hand-off fails the job is returned (still 201) as 'failed'.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import ScanCreate, ScanJobResponse
from auth.dependencies import get_current_identity, get_request_context, require_writer
from auth.models import RequestContext
from core.errors import NotFound
from tenant.models import ScanJob
from tenant.store import TenantStore
from tenant.triggers import dispatch_scan

router = APIRouter(dependencies=[Depends(get_current_identity)])


@limiter.limit("60/minute")
@router.get("/scans", response_model=list[ScanJobResponse])
def list_scans(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[ScanJobResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [ScanJobResponse.from_domain(s) for s in store.list_scan_jobs(ctx.organization_id)]


@limiter.limit("30/minute")
@router.post("/scans", response_model=ScanJobResponse, status_code=201)
def create_scan(
    request: Request,
    body: ScanCreate,
    ctx: RequestContext = Depends(require_writer),
) -> ScanJobResponse:
    """Create a pending scan job and hand it to the scan engine.

    404 asset_not_found when assetId is not one of the caller's assets.
    """
    store: TenantStore = request.app.state.tenant_store
    scan = store.create_scan_job(
        ctx.organization_id,
        ScanJob(name=body.name, type=body.type.value, asset_id=body.asset_id, created_by=ctx.user_id),
    )
    scan = dispatch_scan(store, request.app.state.scan_trigger, ctx.organization_id, scan)
    return ScanJobResponse.from_domain(scan)


@router.get("/scans/{scan_id}", response_model=ScanJobResponse)
def get_scan(request: Request, scan_id: int, ctx: RequestContext = Depends(get_request_context)) -> ScanJobResponse:
    store: TenantStore = request.app.state.tenant_store
    scan = store.get_scan_job(ctx.organization_id, scan_id)
    if scan is None:
        raise NotFound.entity("scan_job")
    return ScanJobResponse.from_domain(scan)
