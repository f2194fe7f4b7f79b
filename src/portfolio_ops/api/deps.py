"""
portfolio_ops.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Encapsulate app.state access patterns (engine/sessionmaker and managed-service clients).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from portfolio_ops.auth.errors import FirebaseConfigurationError
from portfolio_ops.auth.firebase import TokenVerifier, get_storage_bucket
from portfolio_ops.billing.google_cloud import BillingQueryRunner
from portfolio_ops.clients.n8n import N8nWebhookClient
from portfolio_ops.images.service import ImageService
from portfolio_ops.landing.github import GitHubActivityClient
from portfolio_ops.settings import Settings, get_settings
from portfolio_ops.storage.bucket import ImageBucket


def settings_dep(request: Request) -> Settings:
    # The app is created with an explicit Settings; fall back to env parsing otherwise.
    return getattr(request.app.state, "settings", None) or get_settings()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created during app lifespan in `portfolio_ops.api.app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def token_verifier_dep(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def bucket_dep(request: Request) -> ImageBucket:
    bucket = getattr(request.app.state, "bucket", None)
    if bucket is None:
        # Built on first use so the app can boot without Firebase credentials.
        try:
            bucket = ImageBucket(get_storage_bucket(settings_dep(request)))
        except FirebaseConfigurationError as e:
            raise HTTPException(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e
        request.app.state.bucket = bucket
    return bucket


def http_client_dep(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def billing_runner_dep(request: Request) -> BillingQueryRunner:
    return request.app.state.billing_runner


def github_client_dep(request: Request) -> GitHubActivityClient:
    return request.app.state.github


def image_service(
    session: AsyncSession = Depends(db_session),
    bucket: ImageBucket = Depends(bucket_dep),
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client_dep),
) -> ImageService:
    return ImageService(
        session=session,
        bucket=bucket,
        settings=settings,
        n8n=N8nWebhookClient(settings=settings, http=http),
    )


# --- Module Notes -----------------------------------------------------------
# Managed-service clients hang off app.state so tests can swap in fakes after
# startup without touching dependency_overrides.
