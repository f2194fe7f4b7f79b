"""
portfolio_ops.storage.bucket

Async facade over a google-cloud-storage bucket.

Responsibilities:
- Run blocking bucket calls in the threadpool.
- Return `StoredObject` snapshots instead of SDK blob objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from google.api_core.exceptions import NotFound
from starlette.concurrency import run_in_threadpool


@dataclass(frozen=True, slots=True)
class StoredObject:
    path: str
    content_type: str | None
    size: int | None
    time_created: datetime | None
    updated: datetime | None
    metadata: dict[str, str] = field(default_factory=dict)


def _snapshot(blob: Any) -> StoredObject:
    return StoredObject(
        path=blob.name,
        content_type=blob.content_type,
        size=int(blob.size) if blob.size is not None else None,
        time_created=blob.time_created,
        updated=blob.updated,
        metadata=dict(blob.metadata or {}),
    )


class ImageBucket:
    def __init__(self, bucket: Any) -> None:
        # `bucket` is a google.cloud.storage.Bucket (firebase_admin.storage.bucket()).
        self._bucket = bucket

    @property
    def name(self) -> str:
        return self._bucket.name

    async def stat(self, path: str) -> StoredObject | None:
        blob = await run_in_threadpool(self._bucket.get_blob, path)
        return _snapshot(blob) if blob is not None else None

    async def download(self, path: str) -> bytes:
        return await run_in_threadpool(self._bucket.blob(path).download_as_bytes)

    async def save(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        metadata: dict[str, str],
    ) -> StoredObject:
        def _save() -> StoredObject:
            blob = self._bucket.blob(path)
            blob.metadata = metadata
            blob.upload_from_string(data, content_type=content_type)
            return _snapshot(blob)

        return await run_in_threadpool(_save)

    async def delete(self, path: str) -> None:
        def _delete() -> None:
            try:
                self._bucket.blob(path).delete()
            except NotFound:
                pass  # already gone

        await run_in_threadpool(_delete)

    async def update_metadata(self, path: str, changes: dict[str, str]) -> StoredObject:
        def _patch() -> StoredObject:
            blob = self._bucket.get_blob(path)
            if blob is None:
                raise FileNotFoundError(path)
            blob.metadata = {**(blob.metadata or {}), **changes}
            blob.patch()
            return _snapshot(blob)

        return await run_in_threadpool(_patch)

    async def list_objects(self, prefix: str) -> list[StoredObject]:
        def _list() -> list[StoredObject]:
            return [
                _snapshot(blob)
                for blob in self._bucket.list_blobs(prefix=prefix)
                if not blob.name.endswith("/")
            ]

        return await run_in_threadpool(_list)


# --- Module Notes -----------------------------------------------------------
# list_blobs returns metadata with each item, so listings need no per-object reload.
