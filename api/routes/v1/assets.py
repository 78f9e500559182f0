"""
api/routes/v1/assets.py -- Organization-scoped asset inventory routes.

Routes:
  GET    /assets              -- list the caller's assets, newest first
  POST   /assets              -- register an asset (writer roles)
  GET    /assets/{asset_id}   -- asset detail
  PUT    /assets/{asset_id}   -- partial update (writer roles)
  DELETE /assets/{asset_id}   -- delete; scans and findings keep their rows
                                 with assetId cleared (writer roles)

An asset id that belongs to another organization answers 404, exactly like
an id that does not exist.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter
from api.models import AssetCreate, AssetResponse, AssetUpdate
from auth.dependencies import get_current_identity, get_request_context, require_writer
from auth.models import RequestContext
from core.errors import NotFound
from tenant.models import Asset
from tenant.store import TenantStore

# Router-level dependency applies to every route registered on this router,
# so no handler can be added without authentication.
router = APIRouter(dependencies=[Depends(get_current_identity)])

# Columns that cannot be cleared with an explicit null.
_NOT_NULL = ("name", "type", "status")


@limiter.limit("60/minute")
@router.get("/assets", response_model=list[AssetResponse])
def list_assets(request: Request, ctx: RequestContext = Depends(get_request_context)) -> list[AssetResponse]:
    store: TenantStore = request.app.state.tenant_store
    return [AssetResponse.from_domain(a) for a in store.list_assets(ctx.organization_id)]


@limiter.limit("30/minute")
@router.post("/assets", response_model=AssetResponse, status_code=201)
def create_asset(
    request: Request,
    body: AssetCreate,
    ctx: RequestContext = Depends(require_writer),
) -> AssetResponse:
    """Register a new asset in the caller's organization."""
    store: TenantStore = request.app.state.tenant_store
    asset = Asset(
        name=body.name,
        type=body.type.value,
        ip=body.ip,
        domain=body.domain,
        port=body.port,
        tags=body.tags,
        metadata=body.metadata,
        status=body.status.value,
    )
    return AssetResponse.from_domain(store.create_asset(ctx.organization_id, asset))


@router.get("/assets/{asset_id}", response_model=AssetResponse)
def get_asset(request: Request, asset_id: int, ctx: RequestContext = Depends(get_request_context)) -> AssetResponse:
    store: TenantStore = request.app.state.tenant_store
    asset = store.get_asset(ctx.organization_id, asset_id)
    if asset is None:
        raise NotFound.entity("asset")
    return AssetResponse.from_domain(asset)


@router.put("/assets/{asset_id}", response_model=AssetResponse)
def update_asset(
    request: Request,
    asset_id: int,
    body: AssetUpdate,
    ctx: RequestContext = Depends(require_writer),
) -> AssetResponse:
    """Change the fields present in the body; everything else is left as is."""
    store: TenantStore = request.app.state.tenant_store
    fields = {
        k: v for k, v in body.model_dump(exclude_unset=True, mode="json").items() if v is not None or k not in _NOT_NULL
    }
    updated = store.update_asset(ctx.organization_id, asset_id, **fields)
    if updated is None:
        raise NotFound.entity("asset")
    return AssetResponse.from_domain(updated)


@router.delete("/assets/{asset_id}", status_code=204)
def delete_asset(request: Request, asset_id: int, ctx: RequestContext = Depends(require_writer)) -> Response:
    store: TenantStore = request.app.state.tenant_store
    if not store.delete_asset(ctx.organization_id, asset_id):
        raise NotFound.entity("asset")
    return Response(status_code=204)
