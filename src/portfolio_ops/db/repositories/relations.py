"""
portfolio_ops.db.repositories.relations

Repository for `ImageRelation` edges (image lineage).

Responsibilities:
- Upsert parent -> child edges between storage objects.
- Resolve the latest parent of an object and the latest child inside a folder.
- Drop every edge touching a deleted object.
"""

from __future__ import annotations

from sqlalchemy import delete, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ops.db.models import ImageRelation, RelationKind, utcnow


class RelationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        *,
        user_id: str,
        source_path: str,
        target_path: str,
        kind: RelationKind,
    ) -> ImageRelation:
        stmt = select(ImageRelation).where(
            ImageRelation.user_id == user_id,
            ImageRelation.source_path == source_path,
            ImageRelation.target_path == target_path,
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            # Touching updated_at makes this edge win the "latest parent" lookup.
            existing.kind = kind
            existing.updated_at = utcnow()
            await self._session.flush()
            return existing

        relation = ImageRelation(
            user_id=user_id, source_path=source_path, target_path=target_path, kind=kind
        )
        self._session.add(relation)
        await self._session.flush()
        return relation

    async def latest_parent(self, *, user_id: str, target_path: str) -> ImageRelation | None:
        stmt = (
            select(ImageRelation)
            .where(ImageRelation.user_id == user_id, ImageRelation.target_path == target_path)
            .order_by(desc(ImageRelation.updated_at))
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def latest_child(
        self, *, user_id: str, source_path: str, target_prefix: str
    ) -> ImageRelation | None:
        stmt = (
            select(ImageRelation)
            .where(
                ImageRelation.user_id == user_id,
                ImageRelation.source_path == source_path,
                ImageRelation.target_path.startswith(target_prefix, autoescape=True),
            )
            .order_by(desc(ImageRelation.updated_at))
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def forget(self, *, user_id: str, path: str) -> int:
        stmt = delete(ImageRelation).where(
            ImageRelation.user_id == user_id,
            or_(ImageRelation.source_path == path, ImageRelation.target_path == path),
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
