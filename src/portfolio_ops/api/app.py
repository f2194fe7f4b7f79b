"""
portfolio_ops.api.app

FastAPI app factory for the portfolio/ops service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine/session factory, HTTP client).
- Wire managed-service clients (Firebase, BigQuery, GitHub) onto app.state.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from portfolio_ops import __version__
from portfolio_ops.api.routers.billing import router as billing_router
from portfolio_ops.api.routers.copies import router as copies_router
from portfolio_ops.api.routers.gallery import router as gallery_router
from portfolio_ops.api.routers.health import router as health_router
from portfolio_ops.api.routers.images import router as images_router
from portfolio_ops.api.routers.landing import router as landing_router
from portfolio_ops.api.routers.pages import router as pages_router
from portfolio_ops.api.routers.session import router as session_router
from portfolio_ops.auth.firebase import FirebaseTokenVerifier
from portfolio_ops.auth.gate import SessionGateMiddleware
from portfolio_ops.billing.google_cloud import BillingQueryRunner
from portfolio_ops.db.init_db import init_db
from portfolio_ops.db.session import create_engine, create_sessionmaker
from portfolio_ops.landing.github import GitHubActivityClient
from portfolio_ops.observability.logging import configure_logging, get_logger
from portfolio_ops.observability.middleware import RequestContextMiddleware
from portfolio_ops.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        json_logs=settings.env != "dev",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.settings = settings
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Prod runs Alembic migrations instead.
            await init_db(engine)

        http = httpx.AsyncClient(timeout=httpx.Timeout(15.0))
        app.state.http = http
        app.state.token_verifier = FirebaseTokenVerifier(settings)
        # The storage bucket needs Firebase credentials; `api.deps.bucket_dep` builds it lazily.
        app.state.bucket = None
        app.state.billing_runner = BillingQueryRunner(settings)
        app.state.github = GitHubActivityClient(settings=settings, http=http)
        try:
            yield
        finally:
            await http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Portfolio Ops",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Starlette runs the last-added middleware first: request context, then the gate.
    app.add_middleware(SessionGateMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router, tags=["health"])
    app.include_router(landing_router)
    app.include_router(session_router)
    app.include_router(pages_router)
    app.include_router(images_router)
    app.include_router(gallery_router)
    app.include_router(copies_router)
    app.include_router(billing_router)

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; request handling lives in routers and services.
