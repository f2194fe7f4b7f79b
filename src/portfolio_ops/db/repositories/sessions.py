"""
portfolio_ops.db.repositories.sessions

Repository for `FirebaseSession` entities.

Responsibilities:
- Upsert a session row keyed by the Firebase ID token.
- Revoke sessions and look up the live (unrevoked, unexpired) one.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portfolio_ops.db.models import FirebaseSession, utcnow


class SessionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(
        self,
        *,
        token: str,
        user_id: str,
        expires_at: datetime,
        ip: str | None,
        user_agent: str | None,
        provider: str,
    ) -> FirebaseSession:
        stmt = select(FirebaseSession).where(FirebaseSession.token == token)
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            # Re-registering a token also un-revokes it.
            existing.user_id = user_id
            existing.expires_at = expires_at
            existing.revoked_at = None
            existing.ip = ip
            existing.user_agent = user_agent
            existing.provider = provider
            existing.updated_at = utcnow()
            await self._session.flush()
            return existing

        row = FirebaseSession(
            token=token,
            user_id=user_id,
            expires_at=expires_at,
            revoked_at=None,
            ip=ip,
            user_agent=user_agent,
            provider=provider,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def revoke(self, token: str) -> int:
        stmt = (
            update(FirebaseSession)
            .where(FirebaseSession.token == token, FirebaseSession.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0

    async def find_live(self, *, token: str, user_id: str) -> FirebaseSession | None:
        stmt = (
            select(FirebaseSession)
            .options(selectinload(FirebaseSession.user))
            .where(
                FirebaseSession.token == token,
                FirebaseSession.user_id == user_id,
                FirebaseSession.revoked_at.is_(None),
                FirebaseSession.expires_at > utcnow(),
            )
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()
