"""
portfolio_ops.db.repositories.images

Repository for `Image` and `OptimizationStat` entities.

Responsibilities:
- Create optimized image rows together with their optimization stats.
- List/fetch the caller's live (not soft-deleted) images.
- Soft-delete images by their optimized path.
"""

from __future__ import annotations

import uuid

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ops.db.models import Image, OptimizationStat, utcnow


class ImageRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields) -> Image:
        image = Image(**fields)
        self._session.add(image)
        await self._session.flush()
        return image

    async def add_stat(
        self,
        *,
        image_id: uuid.UUID,
        engine: str,
        quality: int,
        effort: int,
        saved_bytes: int,
        saved_percent: float,
    ) -> OptimizationStat:
        stat = OptimizationStat(
            image_id=image_id,
            engine=engine,
            quality=quality,
            effort=effort,
            saved_bytes=saved_bytes,
            saved_percent=saved_percent,
        )
        self._session.add(stat)
        await self._session.flush()
        return stat

    async def list_live(self, user_id: str, *, limit: int) -> list[Image]:
        stmt = (
            select(Image)
            .where(Image.user_id == user_id, Image.deleted_at.is_(None))
            .order_by(desc(Image.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_live(self, *, image_id: uuid.UUID, user_id: str) -> Image | None:
        stmt = select(Image).where(
            Image.id == image_id, Image.user_id == user_id, Image.deleted_at.is_(None)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def find_live_by_optimized_path(self, *, user_id: str, path: str) -> Image | None:
        stmt = select(Image).where(
            Image.user_id == user_id,
            Image.optimized_path == path,
            Image.deleted_at.is_(None),
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def latest_stat(self, image_id: uuid.UUID) -> OptimizationStat | None:
        stmt = (
            select(OptimizationStat)
            .where(OptimizationStat.image_id == image_id)
            .order_by(desc(OptimizationStat.created_at))
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def soft_delete(self, image: Image) -> None:
        image.deleted_at = utcnow()
        await self._session.flush()
