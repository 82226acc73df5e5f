"""
auth/dependencies.py -- FastAPI Depends() helpers for the request principal.

The authorization middleware (api/main.py) resolves the bearer token once per
request and stores the result on request.state.principal (None when
anonymous). These helpers read it back for route handlers -- they never decode
the token a second time.

try_get_current_principal() is the soft variant (returns None).
get_current_principal() raises HTTP 401 if the request is anonymous.

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Principal


def try_get_current_principal(request: Request) -> Principal | None:
    """Return the principal attached by the authorization middleware, or None."""
    return getattr(request.state, "principal", None)


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is anonymous.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal
