"""
api/routes/v1/iam.py -- IAM records observed by IAM scans. Read-only over HTTP;
records are written by the scan engine through TenantStore.create_iam_record.
"""

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import IamRecordResponse
from auth.dependencies import get_current_identity, get_request_context
from auth.models import RequestContext
from tenant.store import TenantStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


@limiter.limit("60/minute")
@router.get("/iam-records", response_model=list[IamRecordResponse])
def list_iam_records(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[IamRecordResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [IamRecordResponse.from_domain(r) for r in store.list_iam_records(ctx.organization_id)]
