"""
api/routes/v1/compliance.py -- Compliance assessment routes.

Routes:
  GET  /compliance          -- every assessment, newest assessmentDate first
  POST /compliance          -- record an assessment (writer roles)
  GET  /compliance/latest   -- one row per framework: its most recent assessment

Every row carries percentage = round_half_up(score / maxScore * 100).
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import ComplianceCreate, ComplianceScoreResponse
from auth.dependencies import get_current_identity, get_request_context, require_writer
from auth.models import RequestContext
from tenant.models import ComplianceScore
from tenant.store import TenantStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


@limiter.limit("60/minute")
@router.get("/compliance", response_model=list[ComplianceScoreResponse])
def list_compliance(
    request: Request, ctx: RequestContext = Depends(get_request_context)
) -> list[ComplianceScoreResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [ComplianceScoreResponse.from_domain(c) for c in store.list_compliance_scores(ctx.organization_id)]


# Registered before any /compliance/{...} route would be, so "latest" is never
# captured as a path parameter.
@limiter.limit("60/minute")
@router.get("/compliance/latest", response_model=list[ComplianceScoreResponse])
def latest_compliance(
    request: Request, ctx: RequestContext = Depends(get_request_context)
) -> list[ComplianceScoreResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [ComplianceScoreResponse.from_domain(c) for c in store.list_latest_compliance_scores(ctx.organization_id)]


@limiter.limit("30/minute")
@router.post("/compliance", response_model=ComplianceScoreResponse, status_code=201)
def create_compliance(
    request: Request,
    body: ComplianceCreate,
    ctx: RequestContext = Depends(require_writer),
) -> ComplianceScoreResponse:
    """Record an assessment. assessmentDate defaults to now; naive values are taken as UTC."""
    store: TenantStore = request.app.state.tenant_store
    score = ComplianceScore(
        framework=body.framework,
        score=body.score,
        max_score=body.max_score,
        gaps=body.gaps,
        recommendations=body.recommendations,
        assessment_date=body.assessment_date.isoformat() if body.assessment_date else "",
    )
    return ComplianceScoreResponse.from_domain(store.create_compliance_score(ctx.organization_id, score))
