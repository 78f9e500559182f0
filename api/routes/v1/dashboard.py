"""
api/routes/v1/dashboard.py -- Aggregated metrics for the dashboard widgets.

  totalAssets              -- assets in the organization
  criticalVulnerabilities  -- findings with severity critical AND status open
  activeScans              -- scan jobs currently running
  averageComplianceScore   -- mean percentage over the latest assessment of
                              each framework, rounded half-up; 0 if none

This is a read-only aggregate route -- no mutations here.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import DashboardMetricsResponse
from auth.dependencies import get_current_identity, get_request_context
from auth.models import RequestContext
from tenant.store import TenantStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


@limiter.limit("60/minute")
@router.get("/dashboard/metrics", response_model=DashboardMetricsResponse)
def get_dashboard_metrics(
    request: Request, ctx: RequestContext = Depends(get_request_context)
) -> DashboardMetricsResponse:
    store: TenantStore = request.app.state.tenant_store
    return DashboardMetricsResponse.from_domain(store.get_dashboard_metrics(ctx.organization_id))
