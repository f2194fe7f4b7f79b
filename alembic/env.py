"""
alembic.env

Migration environment for the portfolio-ops schema.

Alembic drives a synchronous engine, so the configured async URL is rewritten through
`portfolio_ops.db.session.sync_database_url`. SQLite targets use batch mode.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from portfolio_ops.db import models  # noqa: F401  # registers tables on Base.metadata
from portfolio_ops.db.base import Base
from portfolio_ops.db.session import sync_database_url
from portfolio_ops.settings import Settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def migration_url() -> str:
    return sync_database_url(os.environ.get("PORTFOLIO_DATABASE_URL") or Settings().database_url)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=Base.metadata, compare_type=True, **kwargs)


if context.is_offline_mode():
    _configure(url=migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()
else:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = migration_url()
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
        with context.begin_transaction():
            context.run_migrations()
