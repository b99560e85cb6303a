"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, lifecycle and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Account role. Wire values are the upper-case member names."""

    PASSENGER = "PASSENGER"
    ADMIN = "ADMIN"


@dataclass
class Account:
    """A passenger or administrator account.

    password_hash is the bcrypt digest. It must never leave the process in a
    response body -- api.models.project_account() is the only outward mapping.

    id and created_at are None until the store inserts the record.
    """

    username: str
    email: str
    password_hash: str
    role: Role = Role.PASSENGER
    active: bool = True
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Session:
    """Server-held binding of a random session identifier to an identity.

    role is captured at login time. A later role change does not touch live
    sessions; the account has to log in again to pick it up.
    """

    session_id: str
    account_id: int
    role: Role
    created_at: datetime
