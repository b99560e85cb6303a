"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Route and lifecycle code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  username and email each carry a UNIQUE constraint. AccountLifecycle checks
  for duplicates before saving, but two concurrent registrations can both pass
  that check. The constraint is what actually rejects the second writer;
  save() turns the IntegrityError into ConflictError.

DB path: railauth.db in the project root unless DATABASE_URL says otherwise.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    case,
    create_engine,
    event,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError, NotFoundError
from auth.models import Account, Role

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.PASSENGER.value),
    Column("active", Boolean, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///railauth.db")
        saved = store.save(Account(username="bob", email="bob@x.com", password_hash=digest))
        store.find_by_username("bob")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_id(self, account_id: int) -> Account | None:
        return self._find_one(_accounts.c.id == account_id)

    def find_by_username(self, username: str) -> Account | None:
        """Exact, case-sensitive username match."""
        return self._find_one(_accounts.c.username == username)

    def find_by_email(self, email: str) -> Account | None:
        return self._find_one(_accounts.c.email == email)

    def find_by_username_or_email(self, value: str) -> Account | None:
        """Match value against username and email in one query.

        If value is one account's username and another account's email, the
        username match wins.
        """
        query = (
            select(_accounts)
            .where(or_(_accounts.c.username == value, _accounts.c.email == value))
            .order_by(case((_accounts.c.username == value, 0), else_=1))
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_role(self, role: Role) -> list[Account]:
        return self._find_many(_accounts.c.role == Role(role).value)

    def find_by_active(self, active: bool) -> list[Account]:
        return self._find_many(_accounts.c.active == bool(active))

    def find_all(self) -> list[Account]:
        return self._find_many(None)

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return result or 0

    def ping(self) -> bool:
        """Run a trivial query to verify the database is reachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, account: Account) -> Account:
        """Insert (id is None) or update (id set) an account and return the persisted copy.

        Raises ConflictError if the write would duplicate a username or email.
        Raises NotFoundError if an update targets an id that no longer exists.
        The caller's Account object is left untouched.
        """
        values = {
            "username": account.username,
            "email": account.email,
            "password_hash": account.password_hash,
            "role": Role(account.role).value,
            "active": bool(account.active),
        }
        try:
            with self.engine.connect() as conn:
                if account.id is None:
                    created_at = _now_iso()
                    result = conn.execute(_accounts.insert().values(created_at=created_at, **values))
                    conn.commit()
                    return dataclasses.replace(
                        account,
                        id=result.inserted_primary_key[0],
                        created_at=created_at,
                        role=Role(account.role),
                    )
                result = conn.execute(_accounts.update().where(_accounts.c.id == account.id).values(**values))
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("Username or email already exists.") from exc
        if result.rowcount == 0:
            raise NotFoundError(f"Account {account.id} not found.")
        return dataclasses.replace(account, role=Role(account.role))

    def delete(self, account: Account) -> None:
        """Permanently delete an account. There is no soft-delete."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account.id))
            conn.commit()
        if result.rowcount == 0:
            raise NotFoundError(f"Account {account.id} not found.")

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_one(self, condition) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_accounts).where(condition)).fetchone()
        return _row_to_account(row) if row is not None else None

    def _find_many(self, condition) -> list[Account]:
        query = select(_accounts).order_by(_accounts.c.id)
        if condition is not None:
            query = query.where(condition)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_account(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        role=Role(row.role),
        active=bool(row.active),
        created_at=row.created_at,
    )
