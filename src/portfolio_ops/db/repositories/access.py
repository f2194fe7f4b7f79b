from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ops.db.models import AccessConfig, AuthorizedEmail


class AccessRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_config(self) -> AccessConfig:
        # The singleton row is created with defaults the first time anyone asks.
        config = await self._session.get(AccessConfig, "default")
        if config is not None:
            return config
        config = AccessConfig(
            id="default", require_email_allowlist=True, allow_unverified_emails=False
        )
        self._session.add(config)
        await self._session.flush()
        return config

    async def is_email_authorized(self, email: str) -> bool:
        stmt = select(AuthorizedEmail.id).where(
            AuthorizedEmail.email == email, AuthorizedEmail.active.is_(True)
        )
        return (await self._session.execute(stmt)).first() is not None

    async def authorize_email(self, email: str, *, active: bool = True) -> AuthorizedEmail:
        stmt = select(AuthorizedEmail).where(AuthorizedEmail.email == email)
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            existing.active = active
            await self._session.flush()
            return existing
        row = AuthorizedEmail(email=email, active=active)
        self._session.add(row)
        await self._session.flush()
        return row
