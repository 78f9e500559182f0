"""
api/routes/v1/organization.py -- The caller's own organization.

There is no organization id in the path: a user belongs to exactly one
organization and can only ever see that one.
"""

from fastapi import APIRouter, Depends, Request

from api.models import OrganizationResponse
from auth.dependencies import get_current_identity, get_request_context
from auth.models import RequestContext
from auth.store import UserStore
from core.errors import NotFound

# Auth policy:
# - GET /api/v1/organization: requires auth + organization membership
router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.get("/organization", response_model=OrganizationResponse)
def get_organization(request: Request, ctx: RequestContext = Depends(get_request_context)) -> OrganizationResponse:
    users: UserStore = request.app.state.user_store
    org = users.get_organization(ctx.organization_id)
    if org is None:
        raise NotFound.entity("organization")
    return OrganizationResponse.from_domain(org)
