"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /auth/register  -- create an account; returns a token pair (409 on duplicate)
  POST /auth/login     -- email-or-username + password; returns a token pair
  POST /auth/refresh   -- exchange a refresh token for a new pair
  POST /auth/validate  -- true/false for an "Authorization: Bearer" access token

Security:
  register, login and refresh each spend one token from their route's shared
  bucket before the handler runs (api.limiter.enforce_rate_limit). A 429
  never reaches AuthService.
  Every route also carries the optional per-client ceiling (@limiter.limit,
  see api.limiter), checked after the bucket.
  Anti-enumeration lives in AuthService -- handlers must not add detail to
  its errors.
  Cache-Control: no-store on every response carrying tokens.

Handlers are plain `def`: bcrypt and SQLite are blocking, so FastAPI runs
them in its threadpool rather than on the event loop.

No `from __future__ import annotations` here: the slowapi wrapper is what
FastAPI introspects, and string annotations would be resolved against
slowapi's module globals instead of this one.
"""

from fastapi import APIRouter, Depends, Header, Request, Response

from api.limiter import client_limit, enforce_rate_limit, limiter
from api.models import ErrorResponse, LoginRequest, RefreshRequest, RegisterRequest, TokenResponse
from auth.dependencies import get_auth_service
from auth.service import AuthService

# Auth policy: every route here is public -- these endpoints are how a caller
# obtains credentials in the first place.
router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"model": ErrorResponse, "description": "Too many requests"},
}


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


@router.post(
    "/auth/register",
    response_model=TokenResponse,
    dependencies=[Depends(enforce_rate_limit("register"))],
    responses={**_ERRORS, 409: {"model": ErrorResponse, "description": "User already exists"}},
)
@limiter.limit(client_limit)
def register(
    request: Request,
    body: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Register a new account and return its first access/refresh pair."""
    pair = service.register(body.username, body.password, body.email, body.phone)
    _no_store(response)
    return TokenResponse.from_pair(pair)


@router.post(
    "/auth/login",
    response_model=TokenResponse,
    dependencies=[Depends(enforce_rate_limit("login"))],
    responses={
        **_ERRORS,
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "User disabled"},
    },
)
@limiter.limit(client_limit)
def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Authenticate with email or username and password.

    Returns the same INVALID_CREDENTIALS error for an unknown principal and a
    wrong password.
    """
    pair = service.login(body.principal, body.password)
    _no_store(response)
    return TokenResponse.from_pair(pair)


@router.post(
    "/auth/refresh",
    response_model=TokenResponse,
    dependencies=[Depends(enforce_rate_limit("refresh"))],
    responses={
        **_ERRORS,
        401: {"model": ErrorResponse, "description": "Invalid refresh token"},
        403: {"model": ErrorResponse, "description": "User disabled"},
    },
)
@limiter.limit(client_limit)
def refresh(
    request: Request,
    body: RefreshRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Exchange a refresh token for a new access/refresh pair."""
    pair = service.refresh(body.refresh_token)
    _no_store(response)
    return TokenResponse.from_pair(pair)


@router.post("/auth/validate", response_model=bool)
@limiter.limit(client_limit)
def validate(
    request: Request,
    authorization: str | None = Header(default=None),
    service: AuthService = Depends(get_auth_service),
) -> bool:
    """Return whether the bearer access token is currently valid.

    200 unless the per-client ceiling is hit. A missing header, malformed
    token, bad signature, refresh token or expired token all answer false.
    """
    return service.validate_token(authorization)
