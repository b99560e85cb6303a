"""
auth/errors.py -- Typed failures raised by the account lifecycle and store.

Each exception carries a machine-readable code. The HTTP boundary maps the
exception class to a status code (api/main.py); nothing in auth/ knows about
HTTP.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every expected authentication/authorization failure."""

    code = "auth_error"
    default_message = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ConflictError(AuthError):
    code = "conflict"
    default_message = "Username or email already exists."


class NotFoundError(AuthError):
    code = "not_found"
    default_message = "Account not found."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid credentials."


class AccountInactiveError(AuthError):
    code = "account_inactive"
    default_message = "Account is deactivated."


class ForbiddenError(AuthError):
    code = "forbidden"
    default_message = "You are not allowed to perform this action."


class SelfDeleteForbiddenError(AuthError):
    code = "self_delete_forbidden"
    default_message = "You cannot delete your own account."


class PasswordTooLongError(AuthError):
    code = "password_too_long"
    default_message = "Password must be at most 72 bytes when UTF-8 encoded."
