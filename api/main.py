"""
api/main.py -- FastAPI application entry point for SecAudit.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- one log line per request
  5. request_timeout       -- 503 when a request exceeds REQUEST_TIMEOUT_SECONDS

Lifespan handles startup (stores, triggers, session purge task) and shutdown
(cancel purge task, dispose engines) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.assets import router as assets_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.compliance import router as compliance_router
from api.routes.v1.dashboard import router as dashboard_router
from api.routes.v1.iam import router as iam_router
from api.routes.v1.organization import router as organization_router
from api.routes.v1.reports import router as reports_router
from api.routes.v1.scans import router as scans_router
from api.routes.v1.vulnerabilities import router as vulnerabilities_router
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.sessions import SessionStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError
from tenant.store import TenantStore
from tenant.triggers import LoggingReportTrigger, LoggingScanTrigger

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("secaudit.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired sessions every SESSION_PURGE_INTERVAL_SECONDS.

    validate() already treats expired rows as absent; this only keeps the
    table from growing. The purge runs in a worker thread so the event loop
    is not blocked by the DELETE. A failed purge is logged and retried on the
    next tick. CancelledError from task.cancel() during shutdown propagates
    out of asyncio.sleep and ends the loop.
    """
    while True:
        await asyncio.sleep(_settings.session_purge_interval_seconds)
        try:
            removed = await asyncio.to_thread(app.state.session_store.purge_expired)
        except AppError:
            logger.warning("session purge failed; will retry")
            continue
        if removed:
            logger.info("purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The purge task is started last because it references
    app.state.session_store.
    """
    logger.info("SecAudit API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.tenant_store = TenantStore(_settings.database_url)
    app.state.session_store = SessionStore(
        _settings.effective_session_database_url,
        ttl=_settings.session_ttl_seconds,
    )
    app.state.scan_trigger = LoggingScanTrigger()
    app.state.report_trigger = LoggingReportTrigger()
    logger.info("Stores initialized (organizations=%d)", app.state.user_store.count_organizations())
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.session_store.close()
    app.state.tenant_store.close()
    app.state.user_store.close()
    logger.info("SecAudit API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SecAudit API",
    description="Multi-tenant security audit dashboard: assets, scans, findings, IAM, compliance and reports.",
    version=VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced by auth-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Every registration (add_middleware() and @app.middleware) wraps the stack
# built so far, so the LAST one registered is the outermost. Registered here
# innermost-first: timeout, logging, SlowAPI, CORS, TrustedHost.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def request_timeout(request: Request, call_next):
    """Abort a request that runs longer than REQUEST_TIMEOUT_SECONDS with 503."""
    try:
        return await asyncio.wait_for(call_next(request), timeout=_settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        logger.error("timeout after %.1fs on %s %s", _settings.request_timeout_seconds, request.method, request.url.path)
        return JSONResponse(
            status_code=503,
            content=ErrorResponse.build("timeout", "The request took too long to complete.").model_dump(),
        )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(organization_router, prefix="/api/v1", tags=["Organization"])
app.include_router(assets_router, prefix="/api/v1", tags=["Assets"])
app.include_router(scans_router, prefix="/api/v1", tags=["Scans"])
app.include_router(vulnerabilities_router, prefix="/api/v1", tags=["Vulnerabilities"])
app.include_router(iam_router, prefix="/api/v1", tags=["IAM"])
app.include_router(compliance_router, prefix="/api/v1", tags=["Compliance"])
app.include_router(reports_router, prefix="/api/v1", tags=["Reports"])
app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
def docs(identity: Identity = Depends(get_current_identity)):
    """Swagger UI -- requires a session."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="SecAudit API")


@app.get("/redoc", include_in_schema=False)
def redoc(identity: Identity = Depends(get_current_identity)):
    """ReDoc UI -- requires a session."""
    return get_redoc_html(openapi_url="/openapi.json", title="SecAudit API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map the core/errors.py taxonomy onto its HTTP status and envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.build(exc.code, exc.message, exc.detail).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse.build("rate_limited", "Too many requests.", str(exc.detail)).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the field-level errors when a body, path or query fails validation."""
    detail = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=ErrorResponse.build("validation_error", "Request validation failed.", detail).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Envelope for Starlette/FastAPI HTTP errors (404 on unknown paths, 405, ...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse.build(f"http_{exc.status_code}", str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged server-side only; the client receives a generic
    message without stack details.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse.build("internal_error", "An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No auth and no rate limit -- load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request):
    """Return liveness plus a database probe. 503 when the database cannot be reached."""
    try:
        request.app.state.user_store.ping()
        request.app.state.tenant_store.ping()
    except AppError:
        body = HealthResponse(status="degraded", version=VERSION, components={"app": "ok", "database": "error"})
        return JSONResponse(status_code=503, content=body.model_dump())
    return HealthResponse(version=VERSION, components={"app": "ok", "database": "ok"})
