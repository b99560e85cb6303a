"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

The access policy middleware (api/main.py) resolves the session cookie once
per request and stores the result on request.state.session. The helpers here
read that value, falling back to a registry lookup when a route is exercised
without the middleware.

try_get_session() is the soft variant (returns None when unauthenticated).
get_current_session() wraps it and raises HTTP 401.
require_admin() wraps get_current_session() and raises HTTP 403 if not ADMIN.
require_self() enforces the self-only rule on /auth/users/{user_id}/... routes.

Layer rule: no imports from api/. This module may import fastapi because it
is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, Response

from auth.errors import ForbiddenError
from auth.lifecycle import AccountLifecycle
from auth.models import Role, Session
from auth.sessions import SessionRegistry
from core.config import get_settings

_settings = get_settings()


def get_lifecycle(request: Request) -> AccountLifecycle:
    return request.app.state.lifecycle


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session_id(request: Request) -> str | None:
    """Return the raw session identifier from the session cookie, if any."""
    return request.cookies.get(_settings.session_cookie_name) or None


def try_get_session(request: Request) -> Session | None:
    """Return the caller's live session, or None. Never raises."""
    if hasattr(request.state, "session"):
        return request.state.session
    return get_registry(request).lookup(get_session_id(request))


def get_current_session(request: Request) -> Session:
    """Require a live session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(session: Session = Depends(get_current_session)): ...
    """
    session = try_get_session(request)
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return session


def require_admin(session: Session = Depends(get_current_session)) -> Session:
    """Require the ADMIN role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    if session.role is not Role.ADMIN:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return session


def require_self(user_id: int, session: Session = Depends(get_current_session)) -> Session:
    """Require the caller to be the account named by the {user_id} path parameter.

    Applies to every role, admins included: an admin edits other accounts
    through the /auth/admin routes, never through self-service ones.
    """
    if session.account_id != user_id:
        raise ForbiddenError("You can only modify your own account.")
    return session


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response: Response, session_id: str) -> None:
    """Write the session identifier as an httpOnly cookie.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches registry expiry; a session cookie when expiry is disabled.
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.session_expire_seconds or None,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(_settings.session_cookie_name)
