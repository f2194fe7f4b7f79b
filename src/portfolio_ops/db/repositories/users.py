from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ops.db.models import Role, User, utcnow


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str) -> User | None:
        return await self._session.get(User, user_id)

    async def upsert(
        self,
        *,
        user_id: str,
        email: str,
        name: str,
        avatar_url: str | None,
    ) -> User:
        # Role is never touched here; it is granted out of band.
        existing = await self._session.get(User, user_id)
        if existing is not None:
            existing.email = email
            existing.name = name
            existing.avatar_url = avatar_url
            existing.updated_at = utcnow()
            await self._session.flush()
            return existing

        user = User(id=user_id, email=email, name=name, avatar_url=avatar_url, role=Role.reader)
        self._session.add(user)
        await self._session.flush()
        return user

    async def set_role(self, user_id: str, role: Role) -> None:
        user = await self._session.get(User, user_id, with_for_update=True)
        if user is None:
            return
        user.role = role
        user.updated_at = utcnow()
