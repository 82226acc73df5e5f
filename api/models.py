"""
API request and response models for the authentication REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (nationalId, birthDate, tokenType) to match the
existing front-end clients. Python attributes stay snake_case; the alias
generator does the translation and populate_by_name lets tests construct
models either way.

Field validators here check input *shape* only (required, length, pattern).
Business rules -- CPF checksum, age, password composition, uniqueness -- live
in core/ and auth/directory.py so they also apply to non-HTTP callers.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PastDate, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Principal, User
from core.identifiers import looks_like_national_id
from core.policy import check_login_password, check_name

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_CAMEL_FROZEN = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

NATIONAL_ID_FORMAT_MESSAGE = "National ID must be in the format 00000000000 or 000.000.000-00."


def _validate_national_id_format(value: str) -> str:
    if not looks_like_national_id(value):
        raise ValueError(NATIONAL_ID_FORMAT_MESSAGE)
    return value.strip()


# Shape check only; the checksum is verified by the directory.
NationalIdInput = Annotated[str, Field(min_length=1), AfterValidator(_validate_national_id_format)]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login.

    Password length is 8-12 here, looser than the 8-20 registration policy.
    The difference is deliberate; see core/policy.py.
    """

    model_config = _CAMEL

    national_id: NationalIdInput = Field(description="CPF, bare or punctuated.")
    password: str

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, value: str) -> str:
        error = check_login_password(value)
        if error:
            raise ValueError(error)
        return value


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = _CAMEL

    name: str
    national_id: NationalIdInput
    birth_date: PastDate
    email: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        error = check_name(value)
        if error:
            raise ValueError(error)
        return value


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = _CAMEL

    national_id: NationalIdInput
    birth_date: PastDate
    new_password: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Token returned after a successful login.

    The profile fields are None when the deployment sets
    LOGIN_RESPONSE_INCLUDES_PROFILE=false; routes dump with exclude_none.
    """

    model_config = _CAMEL_FROZEN

    token: str
    token_type: str = "Bearer"
    expires_in: int
    user_id: Optional[int] = None
    name: Optional[str] = None
    email: Optional[str] = None
    national_id: Optional[str] = None
    roles: Optional[list[str]] = None


class MessageResponse(BaseModel):
    """Generic success envelope for endpoints that do not return a resource."""

    model_config = _CAMEL_FROZEN

    success: bool = True
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: Optional[dict[str, Any]] = None


class PrincipalResponse(BaseModel):
    """Response for GET /api/user/me -- the identity carried by the token."""

    model_config = _CAMEL_FROZEN

    user_id: int
    name: str
    email: str
    national_id: str
    roles: list[str]

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            user_id=principal.id,
            name=principal.name,
            email=principal.email,
            national_id=principal.national_id,
            roles=principal.authorities,
        )


class UserResponse(BaseModel):
    """Admin view of a stored account. Never includes the password hash."""

    model_config = _CAMEL_FROZEN

    user_id: int
    name: str
    email: str
    national_id: str
    birth_date: date
    roles: list[str]
    is_active: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            user_id=user.id,
            name=user.name,
            email=user.email,
            national_id=user.national_id,
            birth_date=user.birth_date,
            roles=sorted(role.authority for role in user.roles),
            is_active=user.is_active,
            created_at=user.created_at,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/public/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
