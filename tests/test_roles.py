from __future__ import annotations

import pytest

from portfolio_ops.auth.roles import has_min_role, is_public_path, min_role_for_path, parse_role
from portfolio_ops.auth.session import bearer_token, cookie_token, extract_token
from portfolio_ops.db.models import Role


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/dashboard", Role.collaborator),
        ("/dashboard/images/optimize", Role.collaborator),
        ("/storage-test", Role.collaborator),
        ("/dashboards", None),
        ("/api/images", None),
    ],
)
def test_min_role_for_path(path: str, expected: Role | None) -> None:
    assert min_role_for_path(path) == expected


def test_role_ranks_are_ordered() -> None:
    assert has_min_role(Role.admin, Role.collaborator)
    assert has_min_role(Role.collaborator, Role.collaborator)
    assert not has_min_role(Role.reader, Role.collaborator)


@pytest.mark.parametrize(
    "path",
    ["/", "/healthz", "/api/auth/firebase-session", "/api/secure/session", "/static/app.css",
     "/favicon-32x32.png"],
)
def test_public_paths(path: str) -> None:
    assert is_public_path(path)


@pytest.mark.parametrize("path", ["/dashboard", "/api/images", "/api/billing/usage"])
def test_protected_paths(path: str) -> None:
    assert not is_public_path(path)


def test_parse_role() -> None:
    assert parse_role("collaborator") is Role.collaborator
    assert parse_role(" ADMIN ") is Role.admin
    assert parse_role("owner") is None
    assert parse_role(None) is None


def test_token_extraction_prefers_bearer() -> None:
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    # JWT segments may end with "=" padding.
    assert cookie_token("a=1; firebase_id_token=x.y=; b=2", "firebase_id_token") == "x.y="
    assert cookie_token("a=1", "firebase_id_token") is None
    assert (
        extract_token(
            authorization="Bearer header-token",
            cookie_header="firebase_id_token=cookie-token",
            cookie_name="firebase_id_token",
        )
        == "header-token"
    )
    assert (
        extract_token(
            authorization=None,
            cookie_header="firebase_id_token=cookie-token",
            cookie_name="firebase_id_token",
        )
        == "cookie-token"
    )
