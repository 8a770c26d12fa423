"""
api/main.py -- FastAPI application entry point for Folio.

Exposes the portfolio backend over HTTP: accounts and email verification,
the anonymous/authenticated task manager, the contact form, projects, the
blog and site settings.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens both stores at startup and closes them at shutdown. Services
are built once by wire_services() and reached through app.state; the test
suite calls the same function with in-memory stores and a fake mailer.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, FieldError, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.blog import router as blog_router
from api.routes.v1.contact import router as contact_router
from api.routes.v1.projects import router as projects_router
from api.routes.v1.settings import router as settings_router
from api.routes.v1.tasks import router as tasks_router
from auth.dependencies import require_admin
from auth.models import Identity
from auth.service import AuthService
from auth.store import IdentityStore
from auth.verification import VerificationFlow
from content.settings import SettingsService
from content.store import ContentStore
from core.config import Settings, get_settings
from core.errors import FolioError
from mail.mailer import Mailer

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("folio.api")

_settings = get_settings()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


def open_stores(settings: Settings) -> tuple[IdentityStore, ContentStore]:
    """Open both stores from AUTH_DB_URL / CONTENT_DB_URL (empty = default SQLite file)."""
    timeout = settings.store_timeout_seconds
    if settings.auth_db_url:
        identity_store = IdentityStore(settings.auth_db_url, timeout_seconds=timeout)
    else:
        identity_store = IdentityStore(timeout_seconds=timeout)
    if settings.content_db_url:
        content_store = ContentStore(settings.content_db_url, timeout_seconds=timeout)
    else:
        content_store = ContentStore(timeout_seconds=timeout)
    return identity_store, content_store


def wire_services(
    app: FastAPI,
    identity_store: IdentityStore,
    content_store: ContentStore,
    mailer: Mailer,
    settings: Settings,
    clock: Callable[[], datetime] = _utcnow,
) -> None:
    """Build the services and attach them to app.state."""
    verification = VerificationFlow(
        identity_store,
        mailer,
        expire_seconds=settings.verification_expire_seconds,
        cooldown_seconds=settings.resend_cooldown_seconds,
        clock=clock,
    )
    app.state.identity_store = identity_store
    app.state.content_store = content_store
    app.state.mailer = mailer
    app.state.auth_service = AuthService(identity_store, verification, settings, clock=clock)
    app.state.settings_service = SettingsService(content_store)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores and build services on startup; close stores on shutdown."""
    logger.info("Folio API starting up")
    identity_store, content_store = open_stores(_settings)
    mailer = Mailer(_settings)
    wire_services(app, identity_store, content_store, mailer, _settings)
    if not mailer.is_configured:
        logger.warning("SMTP_HOST not set -- verification links will be logged, not emailed")
    logger.info("Stores initialized (admin_present=%s)", identity_store.find_admin() is not None)

    yield

    identity_store.close()
    content_store.close()
    logger.info("Folio API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Folio API",
    description="Portfolio backend: accounts, tasks, contact form, projects and site settings.",
    version=VERSION,
    lifespan=lifespan,
    # Built-in /docs and /redoc are replaced below with admin-only equivalents.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Session-Id"],
    expose_headers=["X-New-Token"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Refreshed-token middleware
#
# get_current_user() parks a re-issued token on request.state when the
# presented one is close to expiry. request.state is backed by the ASGI scope,
# which this middleware shares with the route, so the token is visible here
# after call_next returns -- including on error responses.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def attach_refreshed_token(request: Request, call_next):
    response = await call_next(request)
    token = getattr(request.state, "refreshed_token", None)
    if token:
        response.headers["X-New-Token"] = token
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(tasks_router, prefix="/api/v1", tags=["Tasks"])
app.include_router(contact_router, prefix="/api/v1", tags=["Contact"])
app.include_router(projects_router, prefix="/api/v1", tags=["Projects"])
app.include_router(blog_router, prefix="/api/v1", tags=["Blog"])
app.include_router(settings_router, prefix="/api/v1", tags=["Settings"])


# ---------------------------------------------------------------------------
# Admin-only API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(user: Identity = Depends(require_admin)):
    """Swagger UI -- admin only."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="Folio API")


@app.get("/redoc", include_in_schema=False)
async def redoc(user: Identity = Depends(require_admin)):
    """ReDoc UI -- admin only."""
    return get_redoc_html(openapi_url="/openapi.json", title="Folio API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, detail: ErrorDetail) -> JSONResponse:
    content = ErrorResponse(error=detail).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(FolioError)
async def folio_error_handler(request: Request, exc: FolioError) -> JSONResponse:
    """Map every typed error kind to its status code and envelope."""
    response = _error_response(exc.status_code, ErrorDetail(code=exc.code, message=exc.message, **exc.extra))
    retry_after = exc.extra.get("retry_after")
    if retry_after is not None:
        response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(
        429,
        ErrorDetail(code="rate_limited", message="Too many requests.", detail=str(exc), retry_after=retry_after),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


def _field_errors(exc: RequestValidationError) -> list[FieldError]:
    fields: list[FieldError] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        name = ".".join(loc) or "body"
        value = err.get("input")
        # Never echo secrets back. A model-level error's input is the whole
        # body; a missing field has no value to report.
        if not loc or "password" in name or err.get("type") == "missing":
            value = None
        fields.append(FieldError(field=name, message=err.get("msg", "Invalid value"), value=value))
    return fields


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with one {field, message, value} entry per failed check."""
    return _error_response(
        422,
        ErrorDetail(code="validation_error", message="Request validation failed.", fields=_field_errors(exc)),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 routes, 405 methods)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception text reaches the response body only when DEBUG=true.
    In production the client receives a generic message and the traceback
    goes to the log.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(
        500,
        ErrorDetail(
            code="internal_error",
            message="An unexpected error occurred.",
            detail=str(exc) if _settings.debug else None,
        ),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and per-store status."""
    database = "ok"
    try:
        request.app.state.identity_store.ping()
        request.app.state.content_store.ping()
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable", exc_info=True)
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
