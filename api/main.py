"""
api/main.py -- FastAPI application entry point for InviteGate.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- answers preflights, adds CORS headers (origins from settings)
  2. log_requests     -- one INFO line per request with latency

Lifespan builds the owned RecordStore (initialized on startup) and the
CredentialAuthority that wraps it, and parks both on app.state. Route handlers
reach them through auth.dependencies.get_authority -- there is no module-level
store.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.authority import CredentialAuthority
from core.config import get_settings
from core.errors import InviteGateError, UnexpectedError
from records.store import RecordStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("invitegate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the store and authority on startup.

    initialize() is idempotent, so restarting against an existing data
    directory never touches stored documents. A data directory that cannot be
    created aborts startup with StorageError.
    """
    logger.info("InviteGate API starting up")
    store = RecordStore(_settings.data_dir)
    store.initialize()
    app.state.store = store
    app.state.authority = CredentialAuthority(
        store,
        secret_key=_settings.secret_key,
        password_salt=_settings.password_salt,
        token_expire_seconds=_settings.token_expire_seconds,
    )
    logger.info("Record store ready at %s", store.data_dir)

    yield

    logger.info("InviteGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="InviteGate API",
    description="Invitation-gated registration and signed session tokens over file-backed JSON storage.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
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


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves as {"error": "<message>"} so clients parse one shape.
# ---------------------------------------------------------------------------


@app.exception_handler(InviteGateError)
async def invitegate_error_handler(request: Request, exc: InviteGateError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or a non-object body is a 400, not FastAPI's default 422."""
    return JSONResponse(status_code=400, content=ErrorResponse(error="Invalid request body").model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected failures.

    The traceback goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=ErrorResponse(error=UnexpectedError().message).model_dump())


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Liveness plus a writability check of the data directory. No auth."""
    store: RecordStore | None = getattr(request.app.state, "store", None)
    storage_ok = store is not None and store.data_dir.is_dir() and os.access(store.data_dir, os.W_OK)
    return HealthResponse(
        status="healthy" if storage_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "storage": "ok" if storage_ok else "error"},
    )
