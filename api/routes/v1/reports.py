"""
api/routes/v1/reports.py -- Report request routes.

Routes:
  GET  /reports   -- list the caller's reports, newest first
  POST /reports   -- request a report (writer roles)

A new report is stored as 'generating' with generatedBy set to the caller and
handed to the configured ReportTrigger, which renders it elsewhere and later
sets fileUrl. If the hand-off fails the report is returned (still 201) as
'failed'.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import ReportCreate, ReportResponse
from auth.dependencies import get_current_identity, get_request_context, require_writer
from auth.models import RequestContext
from tenant.models import Report
from tenant.store import TenantStore
from tenant.triggers import dispatch_report

router = APIRouter(dependencies=[Depends(get_current_identity)])


@limiter.limit("60/minute")
@router.get("/reports", response_model=list[ReportResponse])
def list_reports(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[ReportResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [ReportResponse.from_domain(r) for r in store.list_reports(ctx.organization_id)]


@limiter.limit("10/minute")
@router.post("/reports", response_model=ReportResponse, status_code=201)
def create_report(
    request: Request,
    body: ReportCreate,
    ctx: RequestContext = Depends(require_writer),
) -> ReportResponse:
    store: TenantStore = request.app.state.tenant_store
    report = store.create_report(
        ctx.organization_id,
        Report(name=body.name, type=body.type.value, parameters=body.parameters, generated_by=ctx.user_id),
    )
    report = dispatch_report(store, request.app.state.report_trigger, ctx.organization_id, report)
    return ReportResponse.from_domain(report)
