from __future__ import annotations

import pytest

from portfolio_ops.db.session import _engine_options, sync_database_url
from portfolio_ops.observability.logging import _mask_credentials


def test_credentials_are_masked_in_log_events() -> None:
    event = _mask_credentials(
        None,
        "info",
        {"event": "session_registered", "idToken": "eyJ...", "authorization": "", "uid": "u1"},
    )
    assert event["idToken"] == "***"
    assert event["authorization"] == ""
    assert event["uid"] == "u1"


@pytest.mark.parametrize(
    ("async_url", "sync_url"),
    [
        ("sqlite+aiosqlite:///./portfolio.db", "sqlite:///./portfolio.db"),
        (
            "postgresql+asyncpg://ops:secret@db:5432/portfolio",
            "postgresql+psycopg://ops:secret@db:5432/portfolio",
        ),
        ("postgresql://ops@db/portfolio", "postgresql://ops@db/portfolio"),
    ],
)
def test_sync_database_url(async_url: str, sync_url: str) -> None:
    assert sync_database_url(async_url) == sync_url


def test_in_memory_sqlite_shares_one_connection() -> None:
    assert "poolclass" in _engine_options("sqlite+aiosqlite:///:memory:")
    assert "poolclass" not in _engine_options("sqlite+aiosqlite:///./portfolio.db")
    assert _engine_options("postgresql+asyncpg://db/portfolio") == {"pool_pre_ping": True}
