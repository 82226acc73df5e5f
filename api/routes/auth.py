"""
api/routes/auth.py -- Public authentication endpoints.

Routes:
  POST /auth/login            -- national ID + password; returns a bearer token
  POST /auth/register         -- create a USER account
  POST /auth/forgot-password  -- reset password after national ID + birth date match

Auth policy: every route here is public. The authorization middleware
permits /auth/** unconditionally.

Security:
  [C1] AuthenticationGate equalizes timing between unknown national IDs and
       wrong passwords. Never inline directory lookup + hasher.verify here.
  [M5] Cache-Control: no-store on login responses.

Errors raised by the core (core/errors.py) are turned into the standard
error envelope by the exception handler in api/main.py. Routes only map
success paths.

Handlers are plain `def` because bcrypt is CPU-bound; FastAPI runs them in
its thread pool so the event loop is never blocked.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import ForgotPasswordRequest, LoginRequest, LoginResponse, MessageResponse, RegisterRequest
from auth.directory import UserDirectory
from auth.gate import AuthenticationGate
from core.identifiers import mask_email

logger = logging.getLogger("ecommerce.api.auth")

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with national ID and password; return a bearer token.

    Every failure -- unknown national ID, wrong password, disabled account --
    returns the same 401 "bad_credentials" body.
    """
    gate: AuthenticationGate = request.app.state.gate
    result = gate.authenticate(body.national_id, body.password)

    profile: dict = {}
    if request.app.state.settings.login_response_includes_profile:
        principal = result.principal
        profile = {
            "user_id": principal.id,
            "name": principal.name,
            "email": principal.email,
            "national_id": principal.national_id,
            "roles": principal.authorities,
        }
    response_body = LoginResponse(
        token=result.token.token,
        token_type=result.token.token_type,
        expires_in=result.token.expires_in,
        **profile,
    )

    resp = JSONResponse(status_code=200, content=response_body.model_dump(by_alias=True, exclude_none=True))
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/register", status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Register a new account with role USER.

    Validation failures and duplicates both answer 400 with the first failing
    rule's message.
    """
    directory: UserDirectory = request.app.state.directory
    user = directory.register(
        name=body.name,
        national_id=body.national_id,
        birth_date=body.birth_date,
        email=body.email,
        password=body.password,
    )
    logger.info("Registered user id=%s email=%s", user.id, mask_email(user.email))
    content = MessageResponse(message="User registered successfully.", data={"userId": user.id})
    return JSONResponse(status_code=201, content=content.model_dump(mode="json", by_alias=True))


@router.post("/forgot-password")
def forgot_password(request: Request, body: ForgotPasswordRequest) -> JSONResponse:
    """Set a new password when national ID and birth date both match an account."""
    directory: UserDirectory = request.app.state.directory
    directory.reset_password(body.national_id, body.birth_date, body.new_password)
    content = MessageResponse(message="Password updated successfully.")
    return JSONResponse(status_code=200, content=content.model_dump(mode="json", by_alias=True))
