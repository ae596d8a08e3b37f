"""
api/main.py -- FastAPI application entry point.

Install deps:  pip install -e .
Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan is the only place that reads Settings. It builds every collaborator
with explicit values (secret key, SMTP settings, link base URL) and wires
them into AuthFlowController, then tears the stores down on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.responder import envelope
from api.routes.v1.auth import router as auth_router
from auth.audit import LoginAuditLog
from auth.flows import AuthFlowController
from auth.store import AccountStore
from auth.tokens import TokenService
from core.config import get_settings
from core.mailer import build_mailer

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authflow.api")


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the collaborators, hand them to the flow controller, close them on shutdown.

    Startup order: settings, stores, token service and mailer, then the
    controller that depends on all of them.
    """
    settings = get_settings()
    logger.info("Auth API starting up")
    app.state.settings = settings
    app.state.account_store = AccountStore(settings.database_url)
    app.state.audit_log = LoginAuditLog(settings.database_url)
    app.state.token_service = TokenService(settings.secret_key)
    app.state.auth_flow = AuthFlowController(
        app.state.account_store,
        app.state.token_service,
        build_mailer(settings),
        app.state.audit_log,
        frontend_url=settings.frontend_url,
        mail_from=settings.mail_from,
        session_token_expire_seconds=settings.session_token_expire_seconds,
        verification_token_expire_seconds=settings.verification_token_expire_seconds,
        reset_token_expire_seconds=settings.reset_token_expire_seconds,
        max_login_attempts=settings.max_login_attempts,
    )
    logger.info("Auth flows initialized (max_login_attempts=%d)", settings.max_login_attempts)

    yield

    app.state.account_store.close()
    app.state.audit_log.close()
    logger.info("Auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Auth API",
    description="Sign-up, sign-in with lockout, password reset and email verification.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost"],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
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


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {success, message, data?} envelope as the
# routes so API clients parse every response the same way.
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or path fails schema validation."""
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return envelope(400, False, "Request validation failed.", {"errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPExceptions (auth dependency, unknown routes, bad methods) in the envelope."""
    return envelope(exc.status_code, False, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return envelope(500, False, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus a database probe. No authentication required."""
    try:
        request.app.state.account_store.ping()
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
