"""
api/main.py -- FastAPI application entry point for authgate.

Run with:  uvicorn asgi:app --reload
           python main.py --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers, including on denials
  2. log_requests     -- method, path, status, latency, client address
  3. security_headers -- nosniff, frame, referrer and HSTS headers, including on denials
  4. admission_guard  -- bot -> shield -> rate-limit; may short-circuit

Lifespan builds every component from one Settings instance and stores it on
app.state. Nothing below reads configuration from anywhere else.
"""

from __future__ import annotations

import logging
import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from admission.pipeline import build_pipeline
from api.middleware import admission_guard
from api.models import ErrorDetail, ErrorResponse, HealthResponse, MessageResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.errors import (
    DuplicateIdentityError,
    HashingError,
    InputValidationError,
    InvalidCredentialsError,
    InvalidTokenError,
    TokenError,
)
from auth.passwords import PasswordHasher
from auth.schemas import format_validation_errors
from auth.service import AuthService
from auth.session import SessionTransport
from auth.store import PrincipalStore
from auth.tokens import TokenService
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def install_components(app: FastAPI, settings: Settings, store: Optional[PrincipalStore] = None) -> None:
    """Build every component from settings and attach it to app.state.

    Shared by the real lifespan and the test lifespan so both wire the app
    identically. Pass store to reuse an existing PrincipalStore.
    """
    store = store if store is not None else PrincipalStore(settings)
    tokens = TokenService(settings)
    transport = SessionTransport(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.tokens = tokens
    app.state.transport = transport
    app.state.auth_service = AuthService(store, PasswordHasher(settings), tokens, transport)
    app.state.admission = build_pipeline(settings)
    app.state.started_at = time.monotonic()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load settings once, build components, and dispose of the store on shutdown."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("authgate API starting up (environment=%s, debug=%s)", settings.environment, settings.debug)
    install_components(app, settings)
    logger.info(
        "Admission policy: limits=%s window=%ss storage=%s dry_run=%s",
        settings.role_limits,
        settings.rate_limit_window_seconds,
        settings.rate_limit_storage_uri.split("://", 1)[0],
        settings.admission_dry_run,
    )

    yield

    app.state.store.close()
    logger.info("authgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authgate API",
    description="Authentication and admission-control gateway.",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each add_middleware()/@app.middleware call wraps everything registered
# before it, so registration order is innermost-first.
# ---------------------------------------------------------------------------

app.middleware("http")(admission_guard)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}
_HSTS = "max-age=31536000; includeSubDomains"


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Add standard security headers to every response, admission denials included.

    Strict-Transport-Security is only sent when the session cookie is Secure.
    """
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    if settings is not None and settings.cookie_secure:
        response.headers.setdefault("Strict-Transport-Security", _HSTS)
    return response


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


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when a request body fails its schema."""
    return _error(400, "validation_error", "Validation failed", ", ".join(format_validation_errors(exc.errors())))


@app.exception_handler(InputValidationError)
async def input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
    return _error(400, "validation_error", "Validation failed", ", ".join(exc.details))


@app.exception_handler(DuplicateIdentityError)
async def duplicate_identity_handler(request: Request, exc: DuplicateIdentityError) -> JSONResponse:
    return _error(409, "duplicate_identity", "Email already exists")


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError) -> JSONResponse:
    """Same body whether the email was unknown or the password wrong."""
    response = _error(401, "invalid_credentials", "Invalid credentials")
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return response


@app.exception_handler(InvalidTokenError)
async def invalid_token_handler(request: Request, exc: InvalidTokenError) -> JSONResponse:
    return _error(401, "unauthorized", "Authentication required.")


@app.exception_handler(HashingError)
@app.exception_handler(TokenError)
async def crypto_fault_handler(request: Request, exc: Exception) -> JSONResponse:
    """Cryptographic faults are ours, not the caller's: log everything, say nothing."""
    logger.exception("Cryptographic fault on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already a structured dict, use it directly as the error field.
    Unknown routes get a "Cannot METHOD /path" message.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    if exc.status_code == 404:
        return _error(404, "not_found", f"Cannot {request.method} {request.url.path}")
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback is always logged. It is included in the response body only
    in debug mode; production clients receive a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    detail = "".join(traceback.format_exception(exc)) if settings is not None and settings.debug else None
    return _error(500, "internal_error", "An unexpected error occurred.", detail)


# ---------------------------------------------------------------------------
# Service endpoints
#
# These go through admission like every other path.
# ---------------------------------------------------------------------------


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "Hello, from authgate!"


@app.get("/api", response_model=MessageResponse, tags=["Health"])
async def api_root() -> MessageResponse:
    return MessageResponse(message="authgate API is running!")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
@app.get("/api/health", response_model=HealthResponse, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness, server time and process uptime in seconds."""
    return HealthResponse(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
    )
