"""
api/main.py -- FastAPI application entry point for the authentication service.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- answers preflight requests before anything else sees them
  2. log_requests     -- method, path, status, latency for every response
  3. authorize        -- resolves the bearer token, attaches the principal to
                         request.state, applies the path rule table (401/403)

Lifespan opens the user store and builds the service graph on app.state;
shutdown disposes of the store's connection pool.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.access import AccessDecision, AuthorizationFilter
from auth.directory import UserDirectory
from auth.gate import AuthenticationGate
from auth.hashing import BcryptPasswordHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.errors import AuthServiceError, ForbiddenError, StorageError

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ecommerce.api")


# ---------------------------------------------------------------------------
# Service graph
# ---------------------------------------------------------------------------


def build_services(app: FastAPI, settings: Settings, user_store: UserStore) -> None:
    """Wire the auth components onto app.state.

    Shared by the real lifespan and the test lifespan so both run the exact
    same graph; only the store (and its database URL) differs.
    """
    hasher = BcryptPasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenService(
        secret_key=settings.secret_key,
        expire_seconds=settings.token_expire_seconds,
        algorithm=settings.token_algorithm,
    )
    directory = UserDirectory(user_store, hasher)

    app.state.settings = settings
    app.state.user_store = user_store
    app.state.tokens = tokens
    app.state.directory = directory
    app.state.gate = AuthenticationGate(directory, hasher, tokens)
    app.state.authorization_filter = AuthorizationFilter(tokens)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Everything before yield runs on startup; everything after on shutdown."""
    settings = get_settings()
    logger.info("Auth service starting up")
    build_services(app, settings, UserStore(settings.database_url))
    logger.info("User store initialized")

    yield

    app.state.user_store.close()
    logger.info("Auth service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="E-commerce Auth API",
    description="Registration, login and role-based access for the e-commerce platform.",
    version=API_VERSION,
    lifespan=lifespan,
)


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


# ---------------------------------------------------------------------------
# Authorization middleware
#
# Runs before routing, so it sees every path -- including ones with no
# handler. The principal goes on request.state (request-scoped); handlers
# read it through auth.dependencies.get_current_principal.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def authorize(request: Request, call_next):
    access: AuthorizationFilter = request.app.state.authorization_filter
    decision, principal = access.evaluate(request.url.path, request.headers.get("Authorization"))
    request.state.principal = principal

    if decision is AccessDecision.UNAUTHORIZED:
        response = _error_response(401, "unauthorized", "Authentication required.")
        response.headers["WWW-Authenticate"] = "Bearer"
        return response
    if decision is AccessDecision.FORBIDDEN:
        forbidden = ForbiddenError()
        return _error_response(forbidden.status_code, forbidden.code, forbidden.message)
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered after authorize, so it wraps it: 401/403 short-circuits are
# logged too.
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


# CORS is added last so it is the outermost layer: preflight OPTIONS requests
# carry no Authorization header and must be answered before authorize runs.
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthServiceError)
async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Map core errors to their status code and client-safe message.

    StorageError is logged with its chained cause; the client sees only the
    generic internal_error message.
    """
    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure on %s %s",
            request.method,
            request.url.path,
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    response = _error_response(exc.status_code, exc.code, exc.message)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with the first failing field's message."""
    errors = exc.errors()
    if not errors:
        return _error_response(400, "validation_error", "Invalid data.")
    first = errors[0]
    message = str(first.get("msg", "Invalid data.")).removeprefix("Value error, ")
    location = ".".join(str(part) for part in first.get("loc", ()))
    return _error_response(400, "validation_error", message, detail=location or None)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail={"code", "message"}. When
    detail is already a structured dict, use it directly as the error field.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the server log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Under /api/public so the authorization middleware lets load balancers in
# without a token.
# ---------------------------------------------------------------------------


@app.get("/api/public/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
