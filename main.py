#!/usr/bin/env python3
"""
RailAuth -- account administration from the command line.

Works directly against the account database (DATABASE_URL), without the HTTP
server. The usual first step on a fresh deployment is creating an admin:

Usage:
  python main.py create-user alice alice@example.com --role ADMIN
  python main.py list-users
  python main.py list-users --role PASSENGER
  python main.py list-users --inactive
  python main.py set-active 7 --off
  python main.py set-active 7 --on

Passwords are always read with a hidden prompt, never from argv, so they do
not end up in shell history.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.errors import AuthError
from auth.lifecycle import AccountLifecycle
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.store import AccountStore
from core.config import get_settings


def _prompt_password() -> Optional[str]:
    """Ask for a password twice. Returns None if the entries differ or are empty."""
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if not first:
        print("  [!] Password must not be empty.")
        return None
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def _print_accounts(accounts: list[Account]) -> None:
    if not accounts:
        print("  No accounts.")
        return
    print(f"  {'ID':>4}  {'USERNAME':<20} {'EMAIL':<30} {'ROLE':<10} ACTIVE")
    for a in accounts:
        print(f"  {a.id:>4}  {a.username:<20} {a.email:<30} {a.role.value:<10} {'yes' if a.active else 'no'}")


def _cmd_create_user(lifecycle: AccountLifecycle, args: argparse.Namespace) -> int:
    password = _prompt_password()
    if password is None:
        return 1
    account = lifecycle.register(args.username, args.email, password, Role(args.role))
    print(f"  Created account {account.id} ({account.username}, {account.role.value}).")
    return 0


def _cmd_list_users(lifecycle: AccountLifecycle, args: argparse.Namespace) -> int:
    if args.role:
        accounts = lifecycle.list_by_role(Role(args.role))
    elif args.inactive:
        accounts = lifecycle.list_by_active(False)
    else:
        accounts = lifecycle.list_all()
    _print_accounts(accounts)
    return 0


def _cmd_set_active(lifecycle: AccountLifecycle, args: argparse.Namespace) -> int:
    account = lifecycle.set_active(args.account_id, args.active)
    print(f"  Account {account.id} is now {'active' if account.active else 'inactive'}.")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="railauth",
        description="Administer RailAuth accounts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-user", help="Create an account (password is prompted)")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.PASSENGER.value,
        help="Account role (default: PASSENGER)",
    )
    create.set_defaults(handler=_cmd_create_user)

    listing = sub.add_parser("list-users", help="List accounts")
    group = listing.add_mutually_exclusive_group()
    group.add_argument("--role", choices=[r.value for r in Role], help="Only accounts with this role")
    group.add_argument("--inactive", action="store_true", help="Only deactivated accounts")
    listing.set_defaults(handler=_cmd_list_users)

    toggle = sub.add_parser("set-active", help="Activate or deactivate an account")
    toggle.add_argument("account_id", type=int)
    state = toggle.add_mutually_exclusive_group(required=True)
    state.add_argument("--on", dest="active", action="store_true", help="Activate")
    state.add_argument("--off", dest="active", action="store_false", help="Deactivate")
    toggle.set_defaults(handler=_cmd_set_active)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "handler", None):
        parser.print_help()
        return 0

    settings = get_settings()
    store = AccountStore(settings.database_url)
    lifecycle = AccountLifecycle(store, PasswordHasher(rounds=settings.bcrypt_rounds))
    try:
        return args.handler(lifecycle, args)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
