"""
tests.conftest

Shared fixtures: an app booted on in-memory SQLite with managed services replaced by fakes.

Responsibilities:
- Provide fake Firebase token verification, storage bucket and BigQuery runner.
- Drive the app lifespan explicitly (httpx ASGITransport does not).
- Offer helpers to sign a user in with a given role.
"""

from __future__ import annotations

import io
from collections.abc import AsyncIterator
from datetime import UTC, date, datetime, timedelta
from typing import Any

import httpx
import pytest_asyncio
from fastapi import FastAPI
from google.api_core.exceptions import NotFound
from PIL import Image as PILImage

from portfolio_ops.api.app import create_app
from portfolio_ops.auth.errors import InvalidSessionError
from portfolio_ops.billing.google_cloud import BillingConfig
from portfolio_ops.db.models import Role
from portfolio_ops.db.repositories.access import AccessRepo
from portfolio_ops.db.repositories.users import UserRepo
from portfolio_ops.landing.github import GitHubActivityClient
from portfolio_ops.settings import Settings
from portfolio_ops.storage.bucket import StoredObject

BUCKET_NAME = "test-bucket"


class FakeVerifier:
    def __init__(self) -> None:
        self.tokens: dict[str, dict[str, Any]] = {}
        self.verified: list[str] = []

    def add(
        self,
        token: str,
        *,
        uid: str,
        email: str,
        name: str = "Test User",
        email_verified: bool = True,
        **claims: Any,
    ) -> None:
        self.tokens[token] = {
            "uid": uid,
            "email": email,
            "email_verified": email_verified,
            "name": name,
            "exp": int((datetime.now(UTC) + timedelta(hours=1)).timestamp()),
            "firebase": {"sign_in_provider": "google.com"},
            **claims,
        }

    async def verify(self, id_token: str) -> dict[str, Any]:
        self.verified.append(id_token)
        claims = self.tokens.get(id_token)
        if claims is None:
            raise InvalidSessionError("Invalid session token: unknown token")
        return dict(claims)


class FakeBucket:
    """In-memory stand-in for `ImageBucket`."""

    def __init__(self, name: str = BUCKET_NAME) -> None:
        self.name = name
        self.blobs: dict[str, bytes] = {}
        self.objects: dict[str, StoredObject] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=UTC)

    def _tick(self) -> datetime:
        # Strictly increasing creation times keep "newest first" listings deterministic.
        self._clock += timedelta(seconds=1)
        return self._clock

    def put(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str | None,
        metadata: dict[str, str] | None = None,
    ) -> StoredObject:
        now = self._tick()
        obj = StoredObject(
            path=path,
            content_type=content_type,
            size=len(data),
            time_created=now,
            updated=now,
            metadata=dict(metadata or {}),
        )
        self.blobs[path] = data
        self.objects[path] = obj
        return obj

    async def stat(self, path: str) -> StoredObject | None:
        return self.objects.get(path)

    async def download(self, path: str) -> bytes:
        if path not in self.blobs:
            raise NotFound(path)
        return self.blobs[path]

    async def save(
        self, path: str, data: bytes, *, content_type: str, metadata: dict[str, str]
    ) -> StoredObject:
        return self.put(path, data, content_type=content_type, metadata=metadata)

    async def delete(self, path: str) -> None:
        self.blobs.pop(path, None)
        self.objects.pop(path, None)

    async def update_metadata(self, path: str, changes: dict[str, str]) -> StoredObject:
        obj = self.objects.get(path)
        if obj is None:
            raise FileNotFoundError(path)
        updated = StoredObject(
            path=obj.path,
            content_type=obj.content_type,
            size=obj.size,
            time_created=obj.time_created,
            updated=self._tick(),
            metadata={**obj.metadata, **changes},
        )
        self.objects[path] = updated
        return updated

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        return [obj for path, obj in self.objects.items() if path.startswith(prefix)]


class FakeBillingRunner:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.calls: list[tuple[BillingConfig, str, date, date]] = []

    async def run(
        self, config: BillingConfig, query: str, start: date, end: date
    ) -> list[dict[str, Any]]:
        self.calls.append((config, query, start, end))
        return list(self.rows)


def github_unavailable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, json={"message": "Not Found"})


def image_bytes(
    fmt: str = "PNG", *, size: tuple[int, int] = (64, 48), mode: str = "RGB"
) -> bytes:
    color: Any = (200, 40, 40, 128) if mode == "RGBA" else (200, 40, 40)
    out = io.BytesIO()
    PILImage.new(mode, size, color).save(out, format=fmt)
    return out.getvalue()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "env": "test",
        "database_url": "sqlite+aiosqlite:///:memory:",
        "optimized_format": "WEBP",
        "github_token": None,
        "billing_export_table": None,
        "billing_query_project_id": None,
        "firebase_project_id": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def app() -> AsyncIterator[FastAPI]:
    app = create_app(settings=make_settings())
    async with app.router.lifespan_context(app):
        app.state.token_verifier = FakeVerifier()
        app.state.bucket = FakeBucket()
        app.state.billing_runner = FakeBillingRunner()
        github_http = httpx.AsyncClient(transport=httpx.MockTransport(github_unavailable))
        app.state.github = GitHubActivityClient(settings=app.state.settings, http=github_http)
        try:
            yield app
        finally:
            await github_http.aclose()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def authorize_email(app: FastAPI, email: str, *, active: bool = True) -> None:
    async with app.state.sessionmaker() as session:
        await AccessRepo(session).authorize_email(email, active=active)
        await session.commit()


async def set_role(app: FastAPI, uid: str, role: Role) -> None:
    async with app.state.sessionmaker() as session:
        await UserRepo(session).set_role(uid, role)
        await session.commit()


async def sign_in(
    app: FastAPI,
    client: httpx.AsyncClient,
    *,
    uid: str = "user-1",
    email: str = "ada@example.com",
    token: str | None = None,
    role: Role = Role.collaborator,
) -> dict[str, str]:
    """Register a session for `uid` and return bearer headers for it."""
    token = token or f"token-{uid}"
    app.state.token_verifier.add(token, uid=uid, email=email)
    await authorize_email(app, email)
    r = await client.post("/api/auth/firebase-session", json={"idToken": token})
    assert r.status_code == 200, r.text
    # Tests pass tokens explicitly; a lingering cookie would mask "no token" cases.
    client.cookies.clear()
    await set_role(app, uid, role)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def auth_headers(app: FastAPI, client: httpx.AsyncClient) -> dict[str, str]:
    return await sign_in(app, client)


def user_prefix(uid: str = "user-1", folder: str = "gallery") -> str:
    return f"users/{uid}/portfolio-images/{folder}/"


