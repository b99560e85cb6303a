"""
api/routes/auth.py -- Authentication, self-service and account administration endpoints.

Routes (relative to API_PREFIX):
  POST   /auth/register                          -- create account (public)
  POST   /auth/login                             -- password login; sets session cookie (public)
  POST   /auth/logout                            -- revoke caller's session
  GET    /auth/current-user                      -- caller's own account
  PUT    /auth/reset-password                    -- replace password by email (public)
  PUT    /auth/users/{id}/profile                -- self-only profile update
  PUT    /auth/users/{id}/change-password        -- self-only password change
  GET    /auth/admin/users                       -- list all accounts (admin)
  GET    /auth/admin/users/{id}                  -- one account (admin)
  PUT    /auth/admin/users/{id}/role?newRole=    -- change role (admin)
  PUT    /auth/admin/users/{id}/deactivate       -- deactivate (admin)
  PUT    /auth/admin/users/{id}/activate         -- activate (admin)
  DELETE /auth/admin/users/{id}                  -- delete, never self (admin)
  GET    /auth/admin/users/role/{role}           -- list by role (admin)
  GET    /auth/admin/users/status/{active}       -- list by active flag (admin)

Route-level access is enforced twice: by the policy middleware from the
table in auth/policy.py, and by the Depends() helpers below.

Handlers that hash or verify passwords are plain `def` so FastAPI runs them in
its thread pool; bcrypt then blocks a worker thread, not the event loop.

Domain failures (ConflictError, NotFoundError, ...) propagate to the
exception handlers in api/main.py, except on login, where every failure
becomes the same 401.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import (
    AccountResponse,
    AccountView,
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    PasswordChangeRequest,
    PasswordResetRequest,
    ProfileUpdate,
    RegisterRequest,
    project_account,
)
from auth.dependencies import (
    clear_session_cookie,
    get_current_session,
    get_lifecycle,
    get_registry,
    get_session_id,
    require_admin,
    require_self,
    set_session_cookie,
)
from auth.errors import AccountInactiveError, InvalidCredentialsError, NotFoundError
from auth.lifecycle import AccountLifecycle
from auth.models import Role, Session
from auth.sessions import SessionRegistry

logger = logging.getLogger("railauth.api.auth")

router = APIRouter(prefix="/auth")


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AccountResponse, response_model_exclude_none=True, status_code=201)
def register(body: RegisterRequest, lifecycle: AccountLifecycle = Depends(get_lifecycle)) -> AccountResponse:
    """Create a new account. Role defaults to PASSENGER when omitted."""
    account = lifecycle.register(body.username, body.email, body.password, body.role)
    return project_account(account)


@router.post("/login", response_model=AccountResponse, response_model_exclude_none=True)
def login(
    body: LoginRequest,
    request: Request,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
    registry: SessionRegistry = Depends(get_registry),
) -> JSONResponse:
    """Verify credentials, mint a session and set the session cookie.

    Unknown account, wrong password and deactivated account all produce the
    same 401 body, so the response does not reveal whether an account exists
    or what state it is in. The lifecycle logs the real reason.
    """
    try:
        account = lifecycle.login(body.username_or_email, body.password)
    except (NotFoundError, InvalidCredentialsError, AccountInactiveError):
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid username/email or password.")
            ).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    # A session cookie presented at login belongs to whoever logged in before.
    registry.invalidate(get_session_id(request))
    session_id = registry.create(account.id, account.role)
    resp = JSONResponse(
        status_code=200,
        content=project_account(account).model_dump(mode="json", exclude_none=True),
    )
    set_session_cookie(resp, session_id)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.put("/reset-password", response_model=MessageResponse)
def reset_password(body: PasswordResetRequest, lifecycle: AccountLifecycle = Depends(get_lifecycle)) -> MessageResponse:
    """Replace the password of the account registered under body.email."""
    lifecycle.reset_password(body.email, body.new_password)
    return MessageResponse(message="Password reset successfully")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request, registry: SessionRegistry = Depends(get_registry)) -> JSONResponse:
    """Revoke the caller's session and clear the cookie. Other sessions of the account stay live."""
    registry.invalidate(get_session_id(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/current-user", response_model=AccountResponse, response_model_exclude_none=True)
def current_user(
    session: Session = Depends(get_current_session),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> AccountResponse:
    return project_account(lifecycle.get_account(session.account_id))


@router.put("/users/{user_id}/profile", response_model=AccountResponse, response_model_exclude_none=True)
def update_profile(
    user_id: int,
    body: ProfileUpdate,
    session: Session = Depends(require_self),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> AccountResponse:
    """Update the caller's own username and/or email. Empty fields are left unchanged."""
    account = lifecycle.update_profile(user_id, username=body.username, email=body.email)
    return project_account(account)


@router.put("/users/{user_id}/change-password", response_model=MessageResponse)
def change_password(
    user_id: int,
    body: PasswordChangeRequest,
    session: Session = Depends(require_self),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    lifecycle.change_password(user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


# ---------------------------------------------------------------------------
# Account administration (admin only)
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=list[AccountResponse], response_model_exclude_none=True)
def list_users(
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> list[AccountResponse]:
    return [project_account(a, AccountView.ADMIN) for a in lifecycle.list_all()]


@router.get("/admin/users/role/{role}", response_model=list[AccountResponse], response_model_exclude_none=True)
def list_users_by_role(
    role: Role,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> list[AccountResponse]:
    return [project_account(a, AccountView.ADMIN) for a in lifecycle.list_by_role(role)]


@router.get("/admin/users/status/{active}", response_model=list[AccountResponse], response_model_exclude_none=True)
def list_users_by_status(
    active: bool,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> list[AccountResponse]:
    return [project_account(a, AccountView.ADMIN) for a in lifecycle.list_by_active(active)]


@router.get("/admin/users/{user_id}", response_model=AccountResponse, response_model_exclude_none=True)
def get_user(
    user_id: int,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> AccountResponse:
    return project_account(lifecycle.get_account(user_id), AccountView.ADMIN)


@router.put("/admin/users/{user_id}/role", response_model=AccountResponse, response_model_exclude_none=True)
def update_role(
    user_id: int,
    new_role: Role = Query(alias="newRole"),
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> AccountResponse:
    """Change an account's role. Live sessions keep the role they were minted with."""
    return project_account(lifecycle.set_role(user_id, new_role), AccountView.ADMIN)


@router.put("/admin/users/{user_id}/deactivate", response_model=MessageResponse)
def deactivate_user(
    user_id: int,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
    registry: SessionRegistry = Depends(get_registry),
) -> MessageResponse:
    """Deactivate an account and revoke all of its live sessions."""
    lifecycle.set_active(user_id, False)
    registry.invalidate_account(user_id)
    return MessageResponse(message="User deactivated successfully")


@router.put("/admin/users/{user_id}/activate", response_model=MessageResponse)
def activate_user(
    user_id: int,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    lifecycle.set_active(user_id, True)
    return MessageResponse(message="User activated successfully")


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: Session = Depends(require_admin),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
    registry: SessionRegistry = Depends(get_registry),
) -> MessageResponse:
    """Delete an account permanently and revoke its live sessions.

    The caller's own id is taken from the session.
    """
    lifecycle.delete(user_id, caller_id=admin.account_id)
    registry.invalidate_account(user_id)
    return MessageResponse(message="User deleted successfully")
