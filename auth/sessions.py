"""
auth/sessions.py -- In-process server-side session registry.

A session binds a random identifier (the cookie value) to an account id and
the role the account held at login. Nothing is persisted: a restart logs
everybody out. Running more than one worker process would need an external
key-value store with per-entry TTL in place of the dict below.

Thread safety: one lock guards the dict. Route handlers run in FastAPI's
thread pool, so create/lookup/invalidate can race from many threads. Sessions
are independent of one another; there is no per-account coordination, and an
account may hold any number of live sessions.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.models import Role, Session

logger = logging.getLogger("railauth.auth.sessions")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionRegistry:
    """Issue, resolve and revoke sessions.

    Usage:
        registry = SessionRegistry(max_age_seconds=3600)
        sid = registry.create(account.id, account.role)
        registry.lookup(sid)      # Session(...)
        registry.invalidate(sid)
        registry.lookup(sid)      # None
        registry.invalidate_account(account.id)   # every session of the account

    max_age_seconds=0 disables expiry.
    """

    def __init__(self, max_age_seconds: int = 0, clock: Callable[[], datetime] = _utcnow) -> None:
        self._max_age = timedelta(seconds=max_age_seconds) if max_age_seconds > 0 else None
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def create(self, account_id: int, role: Role) -> str:
        """Mint a new session for the account and return its identifier.

        secrets.token_urlsafe(32) gives 256 bits of entropy, so identifiers
        cannot be guessed. Existing sessions of the same account are kept.
        """
        session_id = secrets.token_urlsafe(32)
        session = Session(
            session_id=session_id,
            account_id=account_id,
            role=Role(role),
            created_at=self._clock(),
        )
        with self._lock:
            self._sessions[session_id] = session
        logger.debug("Session created for account %d", account_id)
        return session_id

    def lookup(self, session_id: str | None) -> Session | None:
        """Return the live session for an identifier, or None.

        An expired session is evicted on the way out and reported as absent.
        """
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self._is_expired(session):
                del self._sessions[session_id]
                return None
            return session

    def invalidate(self, session_id: str | None) -> None:
        """Forget a session. Unknown or already-invalid identifiers are ignored."""
        if not session_id:
            return
        with self._lock:
            self._sessions.pop(session_id, None)

    def invalidate_account(self, account_id: int) -> int:
        """Forget every session bound to account_id and return how many were removed."""
        with self._lock:
            doomed = [sid for sid, s in self._sessions.items() if s.account_id == account_id]
            for sid in doomed:
                del self._sessions[sid]
        if doomed:
            logger.info("Revoked %d sessions of account %d", len(doomed), account_id)
        return len(doomed)

    def purge_expired(self) -> int:
        """Evict every expired session and return how many were removed."""
        if self._max_age is None:
            return 0
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if self._is_expired(s)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Purged %d expired sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _is_expired(self, session: Session) -> bool:
        return self._max_age is not None and self._clock() - session.created_at >= self._max_age
