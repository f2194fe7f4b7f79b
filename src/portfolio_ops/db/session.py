"""
portfolio_ops.db.session

Engine and session factory construction.

Responsibilities:
- Build the async engine, pinning in-memory SQLite to a single shared connection.
- Build the sessionmaker used by request dependencies and the lifespan.
- Translate the app's async URL into the sync URL Alembic needs.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from portfolio_ops.settings import Settings

SYNC_DRIVERS = {"sqlite+aiosqlite": "sqlite", "postgresql+asyncpg": "postgresql+psycopg"}


def _engine_options(database_url: str) -> dict[str, Any]:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # Every pooled connection would otherwise open its own empty database.
        options["poolclass"] = StaticPool
    return options


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, **_engine_options(settings.database_url))


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def sync_database_url(database_url: str) -> str:
    url = make_url(database_url)
    sync_driver = SYNC_DRIVERS.get(url.drivername)
    if sync_driver is None:
        return database_url
    return url.set(drivername=sync_driver).render_as_string(hide_password=False)
