"""
auth/passwords.py -- bcrypt password hashing.

Security design decisions:
  bcrypt directly, no passlib wrapper. passlib's internal wrap-bug detection
  builds a password longer than 72 bytes, which bcrypt 4.x rejects outright.

  PasswordHasher is immutable and built once at process start (api/main.py
  lifespan, or main.py for the CLI) and passed to AccountLifecycle. There is
  no module-level instance: tests construct a cheap one (rounds=4) without
  monkeypatching a global.

  The work factor is the whole point. Results are never cached, and every
  login, registration and password change pays the full cost.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

from auth.errors import PasswordTooLongError

# bcrypt only reads this many bytes of input. bcrypt 5 rejects anything
# longer; 4.x silently truncates, which would make distinct passwords collide.
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted adaptive hash for low-entropy secrets.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("secret")
        hasher.verify("secret", digest)  # True
    """

    __slots__ = ("_rounds", "_dummy_hash")

    def __init__(self, rounds: int = 12) -> None:
        if rounds < 4 or rounds > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        object.__setattr__(self, "_rounds", rounds)
        # Timing equalization digest. Computed once so the first unknown-user
        # login is not measurably slower than later ones.
        object.__setattr__(self, "_dummy_hash", self.hash("railauth_timing_dummy"))

    def __setattr__(self, name, value) -> None:
        raise AttributeError("PasswordHasher is immutable")

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the plaintext password.

        Raises PasswordTooLongError if the UTF-8 encoding exceeds
        MAX_PASSWORD_BYTES. Multibyte characters count once per byte, so a
        short password can still be too long.
        """
        encoded = plain.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise PasswordTooLongError()
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest.

        Malformed digests never match, and neither does a plaintext hash()
        would have refused.
        """
        encoded = plain.encode("utf-8")
        if not hashed or len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one verification so a missing account costs as much as a wrong password.

        Input is cut to MAX_PASSWORD_BYTES so over-long plaintexts pay the
        same cost. The result is discarded.
        """
        bcrypt.checkpw(plain.encode("utf-8")[:MAX_PASSWORD_BYTES], self._dummy_hash.encode("utf-8"))

    def __repr__(self) -> str:
        return f"PasswordHasher(rounds={self._rounds})"
