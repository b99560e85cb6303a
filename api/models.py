"""
API request and response models for RailAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. project_account() is the single
mapping between the two.

Field names on the wire are camelCase (usernameOrEmail, newPassword, ...) to
keep existing front-end pages working; Python attributes stay snake_case.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints

from auth.models import Account, Role
from auth.passwords import MAX_PASSWORD_BYTES


def _within_bcrypt_limit(v: str) -> str:
    # Counted in bytes, not characters: "é" * 37 is 74 bytes.
    if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return v


# Identifiers are trimmed. Passwords are taken exactly as sent, surrounding
# whitespace included, so they match what the CLI hashed.
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Email = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=255)]
Password = Annotated[str, StringConstraints(min_length=1), AfterValidator(_within_bcrypt_limit)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Body for POST /auth/register. role is optional and defaults to PASSENGER."""

    username: Username
    email: Email
    password: Password
    role: Optional[Role] = None


class LoginRequest(_CamelModel):
    username_or_email: Username = Field(alias="usernameOrEmail")
    password: Password


class PasswordResetRequest(_CamelModel):
    email: Email
    new_password: Password = Field(alias="newPassword")


class ProfileUpdate(_CamelModel):
    """Body for PUT /auth/users/{id}/profile.

    Unknown keys are ignored, so a smuggled "role" field has no effect.
    """

    username: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]] = None
    email: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]] = None


class PasswordChangeRequest(_CamelModel):
    current_password: Password = Field(alias="currentPassword")
    new_password: Password = Field(alias="newPassword")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountView(str, Enum):
    STANDARD = "standard"
    PUBLIC = "public"
    ADMIN = "admin"


class AccountResponse(BaseModel):
    """Outward representation of an Account. There is no password field."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: Role
    email: Optional[str] = None
    active: Optional[bool] = None
    created_at: Optional[str] = Field(default=None, serialization_alias="createdAt")


_VIEW_FIELDS: dict[AccountView, tuple[str, ...]] = {
    AccountView.PUBLIC: ("id", "username", "role"),
    AccountView.STANDARD: ("id", "username", "email", "role", "active"),
    AccountView.ADMIN: ("id", "username", "email", "role", "active", "created_at"),
}


def project_account(account: Account, view: AccountView = AccountView.STANDARD) -> AccountResponse:
    """Map a domain Account onto the field subset allowed for view.

    The only place an Account becomes a response body, which keeps the
    password hash out of every outward representation.
    """
    return AccountResponse(**{name: getattr(account, name) for name in _VIEW_FIELDS[view]})


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


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
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
