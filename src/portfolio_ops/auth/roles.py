"""
portfolio_ops.auth.roles

Role gate rule table.

Responsibilities:
- Map route prefixes to the minimum role they require.
- Compare roles by rank.
- Decide which paths bypass the gate entirely.
"""

from __future__ import annotations

from dataclasses import dataclass

from portfolio_ops.db.models import Role


@dataclass(frozen=True, slots=True)
class RouteRule:
    prefix: str
    min_role: Role

    def matches(self, path: str) -> bool:
        return path == self.prefix or path.startswith(f"{self.prefix}/")


# First matching rule wins.
ROUTE_ROLE_RULES: tuple[RouteRule, ...] = (
    RouteRule(prefix="/dashboard", min_role=Role.collaborator),
    RouteRule(prefix="/storage-test", min_role=Role.collaborator),
)

PUBLIC_EXACT_PATHS: frozenset[str] = frozenset(
    {
        "/",
        "/favicon.ico",
        "/robots.txt",
        "/sitemap.xml",
        "/api/auth/firebase-session",
        "/api/secure/session",
        "/healthz",
        "/readyz",
        "/docs",
        "/openapi.json",
    }
)

PUBLIC_PREFIXES: tuple[str, ...] = ("/static/",)


def min_role_for_path(path: str) -> Role | None:
    for rule in ROUTE_ROLE_RULES:
        if rule.matches(path):
            return rule.min_role
    return None


def has_min_role(current: Role, minimum: Role) -> bool:
    return current.rank >= minimum.rank


def is_public_path(path: str) -> bool:
    if path in PUBLIC_EXACT_PATHS:
        return True
    if path.startswith(PUBLIC_PREFIXES):
        return True
    # Anything that looks like a file (favicon variants, assets) is served without a session.
    return "." in path


def parse_role(value: str | None) -> Role | None:
    if not value:
        return None
    try:
        return Role(value.strip().upper())
    except ValueError:
        return None
