"""
api/routes/users.py -- Authenticated account endpoints.

Routes:
  GET /api/user/me             -- identity carried by the caller's token (USER)
  GET /api/admin/users/{id}    -- stored account by id (ADMIN)

Auth policy: role checks happen in the authorization middleware before these
handlers run (/api/user/** needs USER, /api/admin/** needs ADMIN). The
handlers only read the principal the middleware attached.

/api/user/me answers from the token claims without touching the database, so
it reflects roles as of token issue time.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import PrincipalResponse, UserResponse
from auth.dependencies import get_current_principal
from auth.directory import UserDirectory
from auth.models import Principal

router = APIRouter()


@router.get("/api/user/me", response_model=PrincipalResponse, response_model_by_alias=True)
async def me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    """Return identity information for the currently authenticated user."""
    return PrincipalResponse.from_principal(principal)


@router.get("/api/admin/users/{user_id}", response_model=UserResponse, response_model_by_alias=True)
def get_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Fetch a stored account. Admin only."""
    directory: UserDirectory = request.app.state.directory
    user = directory.find_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(user)
