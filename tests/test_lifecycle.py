"""Unit tests for auth/lifecycle.py -- AccountLifecycle business rules.

Covers:
- register: default role, explicit role, duplicate username/email, hash never equals plaintext
- login: username or email, check order (existence, password, active flag)
- reset_password and change_password
- update_profile: partial updates, empty fields, collisions with other accounts
- Admin operations: listings, set_role, set_active round trip, delete and self-delete
"""

import pytest

from auth.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    PasswordTooLongError,
    SelfDeleteForbiddenError,
)
from auth.lifecycle import AccountLifecycle
from auth.models import Role


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_defaults_to_active_passenger(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        assert bob.id is not None
        assert bob.role is Role.PASSENGER
        assert bob.active is True
        assert bob.password_hash != "pw1"

    def test_explicit_role(self, lifecycle: AccountLifecycle) -> None:
        admin = lifecycle.register("ada", "ada@x.com", "pw1", Role.ADMIN)
        assert admin.role is Role.ADMIN

    def test_duplicate_username(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(ConflictError):
            lifecycle.register("bob", "other@x.com", "pw2")
        assert len(lifecycle.list_all()) == 1

    def test_duplicate_email(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(ConflictError):
            lifecycle.register("robert", "bob@x.com", "pw2")

    def test_password_over_byte_limit_creates_nothing(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(PasswordTooLongError):
            lifecycle.register("bob", "bob@x.com", "\u00e9" * 37)
        assert lifecycle.list_all() == []

    def test_password_whitespace_is_significant(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("carol", "carol@x.com", "secret ")
        assert lifecycle.login("carol", "secret ").username == "carol"
        with pytest.raises(InvalidCredentialsError):
            lifecycle.login("carol", "secret")

    def test_ids_are_distinct(self, lifecycle: AccountLifecycle) -> None:
        a = lifecycle.register("a", "a@x.com", "pw")
        b = lifecycle.register("b", "b@x.com", "pw")
        assert a.id != b.id


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_by_username_and_by_email(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        assert lifecycle.login("bob", "pw1").id == bob.id
        assert lifecycle.login("bob@x.com", "pw1").id == bob.id

    def test_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.login("ghost", "pw1")

    def test_wrong_password(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(InvalidCredentialsError):
            lifecycle.login("bob", "pw2")

    def test_inactive_with_correct_password(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.set_active(bob.id, False)
        with pytest.raises(AccountInactiveError):
            lifecycle.login("bob", "pw1")

    def test_inactive_with_wrong_password_reports_bad_password(self, lifecycle: AccountLifecycle) -> None:
        """Password is checked before the active flag."""
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.set_active(bob.id, False)
        with pytest.raises(InvalidCredentialsError):
            lifecycle.login("bob", "wrong")

    def test_reactivated_account_logs_in(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.set_active(bob.id, False)
        lifecycle.set_active(bob.id, True)
        assert lifecycle.login("bob", "pw1").id == bob.id


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


class TestPasswords:
    def test_reset_password(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.reset_password("bob@x.com", "pw9")
        assert lifecycle.login("bob", "pw9")
        with pytest.raises(InvalidCredentialsError):
            lifecycle.login("bob", "pw1")

    def test_reset_password_unknown_email(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.reset_password("nobody@x.com", "pw9")

    def test_change_password(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.change_password(bob.id, "pw1", "pw2")
        assert lifecycle.login("bob", "pw2").id == bob.id
        with pytest.raises(InvalidCredentialsError):
            lifecycle.login("bob", "pw1")

    def test_change_password_wrong_current(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(InvalidCredentialsError):
            lifecycle.change_password(bob.id, "nope", "pw2")
        assert lifecycle.login("bob", "pw1").id == bob.id

    def test_change_password_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.change_password(999, "pw1", "pw2")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestUpdateProfile:
    def test_updates_both_fields(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        updated = lifecycle.update_profile(bob.id, username="robert", email="robert@x.com")
        assert (updated.username, updated.email) == ("robert", "robert@x.com")
        assert lifecycle.login("robert", "pw1").id == bob.id

    def test_empty_fields_are_ignored(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        updated = lifecycle.update_profile(bob.id, username="", email="bobby@x.com")
        assert updated.username == "bob"
        assert updated.email == "bobby@x.com"

    def test_no_changes_returns_account(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        assert lifecycle.update_profile(bob.id) == bob

    def test_keeping_own_values_is_allowed(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        updated = lifecycle.update_profile(bob.id, username="bob", email="bob@x.com")
        assert updated.id == bob.id

    def test_username_taken_by_other(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("alice", "alice@x.com", "pw1")
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(ConflictError):
            lifecycle.update_profile(bob.id, username="alice")

    def test_email_taken_by_other(self, lifecycle: AccountLifecycle) -> None:
        lifecycle.register("alice", "alice@x.com", "pw1")
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        with pytest.raises(ConflictError):
            lifecycle.update_profile(bob.id, email="alice@x.com")
        assert lifecycle.get_account(bob.id).email == "bob@x.com"

    def test_role_is_preserved(self, lifecycle: AccountLifecycle) -> None:
        ada = lifecycle.register("ada", "ada@x.com", "pw1", Role.ADMIN)
        assert lifecycle.update_profile(ada.id, username="ada2").role is Role.ADMIN

    def test_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.update_profile(999, username="x")


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


class TestAdmin:
    def test_listings(self, lifecycle: AccountLifecycle) -> None:
        a = lifecycle.register("a", "a@x.com", "pw")
        b = lifecycle.register("b", "b@x.com", "pw", Role.ADMIN)
        lifecycle.set_active(a.id, False)
        assert {x.id for x in lifecycle.list_all()} == {a.id, b.id}
        assert [x.id for x in lifecycle.list_by_role(Role.ADMIN)] == [b.id]
        assert [x.id for x in lifecycle.list_by_active(False)] == [a.id]
        assert [x.id for x in lifecycle.list_by_active(True)] == [b.id]

    def test_set_role(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        assert lifecycle.set_role(bob.id, Role.ADMIN).role is Role.ADMIN
        assert lifecycle.get_account(bob.id).role is Role.ADMIN

    def test_set_role_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.set_role(999, Role.ADMIN)

    def test_set_active_round_trip_keeps_other_fields(self, lifecycle: AccountLifecycle) -> None:
        bob = lifecycle.register("bob", "bob@x.com", "pw1")
        lifecycle.set_active(bob.id, False)
        again = lifecycle.set_active(bob.id, True)
        assert again == bob

    def test_set_active_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(NotFoundError):
            lifecycle.set_active(999, False)

    def test_delete(self, lifecycle: AccountLifecycle) -> None:
        admin = lifecycle.register("ada", "ada@x.com", "pw", Role.ADMIN)
        bob = lifecycle.register("bob", "bob@x.com", "pw")
        lifecycle.delete(bob.id, caller_id=admin.id)
        with pytest.raises(NotFoundError):
            lifecycle.get_account(bob.id)
        with pytest.raises(NotFoundError):
            lifecycle.login("bob", "pw")

    def test_delete_self_is_refused(self, lifecycle: AccountLifecycle) -> None:
        admin = lifecycle.register("ada", "ada@x.com", "pw", Role.ADMIN)
        with pytest.raises(SelfDeleteForbiddenError):
            lifecycle.delete(admin.id, caller_id=admin.id)
        assert lifecycle.get_account(admin.id).id == admin.id

    def test_self_check_precedes_existence_check(self, lifecycle: AccountLifecycle) -> None:
        with pytest.raises(SelfDeleteForbiddenError):
            lifecycle.delete(777, caller_id=777)

    def test_delete_unknown_account(self, lifecycle: AccountLifecycle) -> None:
        admin = lifecycle.register("ada", "ada@x.com", "pw", Role.ADMIN)
        with pytest.raises(NotFoundError):
            lifecycle.delete(99, caller_id=admin.id)
