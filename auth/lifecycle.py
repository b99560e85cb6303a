"""
auth/lifecycle.py -- Account registration, login, self-service and admin operations.

AccountLifecycle is the only code that mutates the account store. Every
operation is synchronous and runs to completion on the caller's thread.
bcrypt work happens inline on purpose.

State machine per account:
  Active <-> Inactive   via set_active()
  Active/Inactive -> Deleted   via delete() (terminal, no undo)
  login() only succeeds from Active.

Uniqueness of username/email is checked here before each save that may
change them, and enforced again by the store's UNIQUE constraints, which
catch the concurrent-writer case the pre-check cannot.

Sessions are not touched here. The HTTP boundary mints and revokes sessions
through SessionRegistry using the Account this class returns.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import dataclasses
import logging

from auth.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    SelfDeleteForbiddenError,
)
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.store import AccountStore

logger = logging.getLogger("railauth.auth.lifecycle")


class AccountLifecycle:
    """Business rules for the account lifecycle.

    Usage:
        lifecycle = AccountLifecycle(AccountStore(url), PasswordHasher())
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.login("bob", "pw1")
    """

    def __init__(self, store: AccountStore, hasher: PasswordHasher) -> None:
        self._store = store
        self._hasher = hasher

    # ------------------------------------------------------------------
    # Public flows
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, role: Role | None = None) -> Account:
        """Create an active account. Role defaults to PASSENGER.

        Raises ConflictError if the username or email is already taken.
        """
        if self._store.find_by_username(username) is not None:
            raise ConflictError("Username already exists.")
        if self._store.find_by_email(email) is not None:
            raise ConflictError("Email already exists.")

        account = Account(
            username=username,
            email=email,
            password_hash=self._hasher.hash(password),
            role=Role(role) if role is not None else Role.PASSENGER,
            active=True,
        )
        saved = self._store.save(account)
        logger.info("Registered account %d (%s, role=%s)", saved.id, saved.username, saved.role.value)
        return saved

    def login(self, username_or_email: str, password: str) -> Account:
        """Verify credentials and return the account.

        Checks run in a fixed order: existence, password, active flag. An
        inactive account with a wrong password therefore reports
        InvalidCredentialsError, not AccountInactiveError.
        """
        account = self._store.find_by_username_or_email(username_or_email)
        if account is None:
            self._hasher.verify_dummy(password)
            logger.info("Login failed: no account matches %r", username_or_email)
            raise NotFoundError("Account not found.")
        if not self._hasher.verify(password, account.password_hash):
            logger.info("Login failed: bad password for account %d", account.id)
            raise InvalidCredentialsError("Invalid password.")
        if not account.active:
            logger.info("Login failed: account %d is deactivated", account.id)
            raise AccountInactiveError()
        logger.info("Account %d logged in", account.id)
        return account

    def reset_password(self, email: str, new_password: str) -> None:
        """Replace the password of the account holding email.

        No current-password check and no emailed token: knowing the address is
        enough. This matches the legacy behavior and is weaker than
        change_password().
        """
        account = self._store.find_by_email(email)
        if account is None:
            raise NotFoundError(f"No account with email {email!r}.")
        self._store.save(dataclasses.replace(account, password_hash=self._hasher.hash(new_password)))
        logger.warning("Password reset by email for account %d", account.id)

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------

    def get_account(self, account_id: int) -> Account:
        account = self._store.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} not found.")
        return account

    def update_profile(self, account_id: int, username: str | None = None, email: str | None = None) -> Account:
        """Change username and/or email. None or empty values leave the field as is.

        Role is deliberately not a parameter: only set_role() changes it.
        """
        account = self.get_account(account_id)
        changes: dict = {}
        if username:
            holder = self._store.find_by_username(username)
            if holder is not None and holder.id != account_id:
                raise ConflictError("Username already taken.")
            changes["username"] = username
        if email:
            holder = self._store.find_by_email(email)
            if holder is not None and holder.id != account_id:
                raise ConflictError("Email already taken.")
            changes["email"] = email
        if not changes:
            return account
        updated = self._store.save(dataclasses.replace(account, **changes))
        logger.info("Account %d updated profile fields: %s", account_id, ", ".join(sorted(changes)))
        return updated

    def change_password(self, account_id: int, current_password: str, new_password: str) -> None:
        """Replace the password after verifying the current one."""
        account = self.get_account(account_id)
        if not self._hasher.verify(current_password, account.password_hash):
            logger.info("Password change rejected for account %d: current password mismatch", account_id)
            raise InvalidCredentialsError("Current password is incorrect.")
        self._store.save(dataclasses.replace(account, password_hash=self._hasher.hash(new_password)))
        logger.info("Account %d changed its password", account_id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_all(self) -> list[Account]:
        return self._store.find_all()

    def list_by_role(self, role: Role) -> list[Account]:
        return self._store.find_by_role(role)

    def list_by_active(self, active: bool) -> list[Account]:
        return self._store.find_by_active(active)

    def set_role(self, account_id: int, role: Role) -> Account:
        account = self.get_account(account_id)
        updated = self._store.save(dataclasses.replace(account, role=Role(role)))
        logger.info("Account %d role changed %s -> %s", account_id, account.role.value, updated.role.value)
        return updated

    def set_active(self, account_id: int, active: bool) -> Account:
        """Activate or deactivate an account. Setting the current value again is a no-op save."""
        account = self.get_account(account_id)
        updated = self._store.save(dataclasses.replace(account, active=bool(active)))
        logger.info("Account %d %s", account_id, "activated" if active else "deactivated")
        return updated

    def delete(self, account_id: int, caller_id: int) -> None:
        """Permanently delete an account.

        The self-delete rule is checked first, so delete(5, caller_id=5) fails
        with SelfDeleteForbiddenError whether or not account 5 exists.
        """
        if account_id == caller_id:
            raise SelfDeleteForbiddenError()
        account = self.get_account(account_id)
        self._store.delete(account)
        logger.warning("Account %d (%s) deleted by account %d", account_id, account.username, caller_id)
