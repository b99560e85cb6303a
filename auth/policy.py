"""
auth/policy.py -- Route-to-policy table and the per-request access decision.

The table is static and ordered; the first matching rule wins and any path
that matches nothing requires authentication. Paths are matched after the
API prefix has been stripped (see api/main.py).

Pattern syntax:
  *     matches any characters within a single path segment
  /**   at the end of a pattern matches the prefix itself and everything below

Decisions:
  ALLOW                 -- proceed to the route handler
  DENY_UNAUTHENTICATED  -- no session; the boundary answers 401
  DENY_FORBIDDEN        -- session present but role too low; the boundary answers 403

Layer rule: no imports from api/ and no HTTP types. decide() takes a path
string and an optional Session so it can be unit tested without a server.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from auth.models import Role, Session


class Policy(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    ADMIN = "admin"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY_UNAUTHENTICATED = "deny_unauthenticated"
    DENY_FORBIDDEN = "deny_forbidden"


def _compile(pattern: str) -> re.Pattern:
    suffix = ""
    if pattern.endswith("/**"):
        pattern = pattern[:-3]
        suffix = "(?:/.*)?"
    body = "[^/]*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}{suffix}$")


@dataclass(frozen=True)
class RouteRule:
    pattern: str
    policy: Policy
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", _compile(self.pattern))

    def matches(self, path: str) -> bool:
        return self._regex.match(path) is not None


def _rules(policy: Policy, *patterns: str) -> tuple[RouteRule, ...]:
    return tuple(RouteRule(p, policy) for p in patterns)


ROUTE_RULES: tuple[RouteRule, ...] = (
    *_rules(
        Policy.PUBLIC,
        "/auth/register",
        "/auth/login",
        "/auth/reset-password",
        "/",
        "/index.html",
        "/login.html",
        "/register.html",
        "/reset-password.html",
        "/*.css",
        "/*.js",
        # Load balancers and monitoring must reach health without a session.
        "/health",
    ),
    *_rules(
        Policy.ADMIN,
        "/auth/admin/**",
        "/admin-dashboard.html",
        "/user-management.html",
    ),
    *_rules(
        Policy.AUTHENTICATED,
        "/auth/users/**",
        "/auth/current-user",
        "/auth/logout",
        "/passenger-dashboard.html",
        "/profile.html",
    ),
)

DEFAULT_POLICY = Policy.AUTHENTICATED


def classify(path: str, rules: tuple[RouteRule, ...] = ROUTE_RULES) -> Policy:
    """Return the policy of the first rule matching path, or the default."""
    for rule in rules:
        if rule.matches(path):
            return rule.policy
    return DEFAULT_POLICY


def decide(path: str, session: Session | None, rules: tuple[RouteRule, ...] = ROUTE_RULES) -> Decision:
    """Decide whether a caller holding session (or None) may reach path."""
    policy = classify(path, rules)
    if policy is Policy.PUBLIC:
        return Decision.ALLOW
    if session is None:
        return Decision.DENY_UNAUTHENTICATED
    if policy is Policy.ADMIN and session.role is not Role.ADMIN:
        return Decision.DENY_FORBIDDEN
    return Decision.ALLOW
