"""
api/main.py -- FastAPI application factory for authgate.

Run with:  uvicorn asgi:app
           python main.py serve

create_app() builds every collaborator up front -- settings, signing keys,
store, hasher, buckets -- so configuration errors (a short or placeholder
secret, a non-positive TTL) stop the process at startup rather than surfacing
on the first request. Tests call create_app() with their own Settings, store
and a manually driven clock.

Middleware: request logging (method, path, status, latency, client). The
optional per-client ceiling is enforced by @limiter.limit on each auth route
(api.limiter), not by middleware.

Lifespan closes the store on shutdown when the app owns it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import client_ip, configure_client_limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError, ErrorCode
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.clock import Clock, SystemClock
from core.config import Settings, get_settings
from core.ratelimit import RateLimiter

__version__ = "0.1.0"

logger = logging.getLogger("authgate.api")


def _error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render the shared error envelope. Every handler below goes through here."""
    clock: Clock = request.app.state.clock
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        timestamp=int(clock.now().timestamp() * 1000),
        status=status_code,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True), headers=headers)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Summarize validation errors as "field: reason" pairs.

    The submitted values are deliberately left out -- they may contain a password.
    """
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err.get("msg", "invalid value"))
    return "; ".join(parts) or "Request validation failed."


def _register_exception_handlers(app: FastAPI) -> None:
    """All handlers return ErrorResponse so clients parse errors uniformly."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(request, exc.status_code, exc.code.value, exc.message, headers)

    @app.exception_handler(RateLimitExceeded)
    async def client_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """429 from the per-client slowapi ceiling, in the same shape as the bucket 429."""
        logger.warning("Client rate limit exceeded on %s from %s", request.url.path, client_ip(request))
        retry_after = int(exc.limit.limit.get_expiry())
        return _error_response(
            request,
            429,
            ErrorCode.RATE_LIMIT_EXCEEDED.value,
            "Too many requests. Try again later.",
            {"Retry-After": str(retry_after)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(request, 400, ErrorCode.INVALID_INPUT.value, _describe_validation_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The exception is logged, never returned: library internals (SQL,
        cryptography) must not leak to clients.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(request, 500, ErrorCode.INTERNAL_ERROR.value, "An unexpected error occurred.")


def create_app(
    settings: Settings | None = None,
    store: UserStore | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Build the authgate ASGI app.

    Args:
        settings: Defaults to get_settings() (environment / .env).
        store:    Defaults to a UserStore on settings.database_url. A store
                  passed in is owned by the caller and is not closed on shutdown.
        clock:    Defaults to SystemClock. Shared by the codec, the buckets and
                  the error timestamps.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    owns_store = store is None
    codec = TokenCodec.from_settings(settings, clock)
    rate_limiter = RateLimiter.from_settings(settings, clock)
    store = store or UserStore(settings.database_url)
    service = AuthService(store, BcryptHasher(settings.bcrypt_rounds), codec)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("authgate %s starting up", __version__)
        yield
        if owns_store:
            store.close()
        logger.info("authgate shutdown complete")

    app = FastAPI(
        title="authgate",
        description="Issues, verifies and refreshes access/refresh tokens.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.clock = clock
    app.state.auth_service = service
    app.state.rate_limiter = rate_limiter
    # slowapi looks for app.state.limiter by convention.
    app.state.limiter = configure_client_limiter(settings)

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
            client_ip(request),
        )
        return response

    _register_exception_handlers(app)
    app.include_router(auth_router, tags=["Auth"])

    @app.get("/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Liveness probe. Not rate limited."""
        return HealthResponse(version=__version__)

    return app
