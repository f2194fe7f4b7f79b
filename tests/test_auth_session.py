"""
tests.test_auth_session

Session registry behaviour through the session endpoints.

Responsibilities:
- Registration: cookie issuance, allowlist and verified-email policy.
- Validation: role checks, revocation, access withdrawal.
"""

from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from conftest import authorize_email, set_role, sign_in
from portfolio_ops.db.models import Role


@pytest.mark.asyncio
async def test_register_sets_http_only_cookie(app: FastAPI, client: httpx.AsyncClient) -> None:
    app.state.token_verifier.add("tok-1", uid="user-1", email="  Ada@Example.com ")
    await authorize_email(app, "ada@example.com")

    r = await client.post(
        "/api/auth/firebase-session",
        json={"idToken": "tok-1"},
        headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "pytest"},
    )
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    assert r.json()["user"] == {
        "uid": "user-1",
        "email": "ada@example.com",
        "name": "Test User",
        "avatarUrl": None,
    }
    cookie = r.headers["set-cookie"]
    assert cookie.startswith("firebase_id_token=tok-1")
    assert "HttpOnly" in cookie
    assert "Max-Age=3600" in cookie
    assert "samesite=lax" in cookie.lower()
    assert "Secure" not in cookie


@pytest.mark.asyncio
async def test_register_requires_token(client: httpx.AsyncClient) -> None:
    r = await client.post("/api/auth/firebase-session", json={})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_rejects_unknown_token(client: httpx.AsyncClient) -> None:
    r = await client.post("/api/auth/firebase-session", json={"idToken": "forged"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_register_denies_email_outside_allowlist(
    app: FastAPI, client: httpx.AsyncClient
) -> None:
    app.state.token_verifier.add("tok-x", uid="user-x", email="mallory@example.com")
    r = await client.post("/api/auth/firebase-session", json={"idToken": "tok-x"})
    assert r.status_code == 403
    assert "set-cookie" not in r.headers


@pytest.mark.asyncio
async def test_register_denies_unverified_email(app: FastAPI, client: httpx.AsyncClient) -> None:
    app.state.token_verifier.add(
        "tok-u", uid="user-u", email="eve@example.com", email_verified=False
    )
    await authorize_email(app, "eve@example.com")
    r = await client.post("/api/auth/firebase-session", json={"idToken": "tok-u"})
    assert r.status_code == 403
    assert "not verified" in r.json()["detail"]


@pytest.mark.asyncio
async def test_current_session_with_min_role(app: FastAPI, client: httpx.AsyncClient) -> None:
    headers = await sign_in(app, client, role=Role.reader)

    r = await client.get("/api/secure/session", headers=headers)
    assert r.status_code == 200
    assert r.json()["session"]["role"] == "READER"

    r = await client.get("/api/secure/session", params={"minRole": "COLLABORATOR"}, headers=headers)
    assert r.status_code == 403

    # Unknown role names do not restrict anything.
    r = await client.get("/api/secure/session", params={"minRole": "OWNER"}, headers=headers)
    assert r.status_code == 200

    await set_role(app, "user-1", Role.admin)
    r = await client.get("/api/secure/session", params={"minRole": "COLLABORATOR"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["session"]["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_current_session_accepts_cookie(app: FastAPI, client: httpx.AsyncClient) -> None:
    await sign_in(app, client, token="cookie-token")
    r = await client.get(
        "/api/secure/session", headers={"cookie": "firebase_id_token=cookie-token"}
    )
    assert r.status_code == 200
    assert r.json()["session"]["uid"] == "user-1"


@pytest.mark.asyncio
async def test_missing_or_unregistered_session_is_401(
    app: FastAPI, client: httpx.AsyncClient
) -> None:
    r = await client.get("/api/secure/session")
    assert r.status_code == 401

    # A valid Firebase token that was never exchanged for a session.
    app.state.token_verifier.add("fresh", uid="user-2", email="bob@example.com")
    await authorize_email(app, "bob@example.com")
    r = await client.get("/api/secure/session", headers={"Authorization": "Bearer fresh"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_delete_revokes_and_clears_cookie(app: FastAPI, client: httpx.AsyncClient) -> None:
    headers = await sign_in(app, client)

    r = await client.delete("/api/auth/firebase-session", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    cookie = r.headers["set-cookie"]
    assert cookie.startswith("firebase_id_token=")
    assert "Max-Age=0" in cookie

    r = await client.get("/api/secure/session", headers=headers)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_delete_without_token_is_400(client: httpx.AsyncClient) -> None:
    r = await client.delete("/api/auth/firebase-session")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_withdrawn_access_revokes_session(app: FastAPI, client: httpx.AsyncClient) -> None:
    headers = await sign_in(app, client)
    await authorize_email(app, "ada@example.com", active=False)

    r = await client.get("/api/secure/session", headers=headers)
    assert r.status_code == 403

    # Restoring access does not resurrect the revoked session.
    await authorize_email(app, "ada@example.com")
    r = await client.get("/api/secure/session", headers=headers)
    assert r.status_code == 401

    # Signing in again re-registers the same token.
    r = await client.post(
        "/api/auth/firebase-session", json={"idToken": headers["Authorization"][7:]}
    )
    assert r.status_code == 200
    client.cookies.clear()
    r = await client.get("/api/secure/session", headers=headers)
    assert r.status_code == 200
