"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth routes.

get_auth_service() hands route handlers the AuthService wired up by
api.main.create_app(). Handlers never build their own collaborators, so tests
swap the store or clock by passing them to create_app().

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """Return the application's AuthService.

    Use as a FastAPI dependency:
        @router.post("/auth/login")
        def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)): ...
    """
    return request.app.state.auth_service
