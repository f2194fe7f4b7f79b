"""
portfolio_ops.images.service

Image service (transaction owner for image rows and lineage edges).

Responsibilities:
- Optimize uploads or stored objects, persist both blobs, the `Image` row and its stats.
- List/rename/delete objects in the caller's gallery, n8n and optimized folders.
- Relay images to the n8n webhook, storing compatible copies and generated variants.
- Record parent -> child relations for every derived object and rebuild lineage on read.

Every path accepted from a request is checked against the caller's own prefixes
before any storage call is made.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from portfolio_ops.clients.n8n import N8nWebhookClient
from portfolio_ops.db.models import Image, RelationKind
from portfolio_ops.db.repositories.images import ImageRepo
from portfolio_ops.db.repositories.relations import RelationRepo
from portfolio_ops.images import lineage, processing
from portfolio_ops.images.errors import ImageRequestError
from portfolio_ops.images.formats import (
    build_optimized_slug,
    image_format_label,
    is_n8n_supported_format,
    is_previewable_image,
    parse_image_id_from_slug,
)
from portfolio_ops.observability.logging import get_logger
from portfolio_ops.settings import Settings
from portfolio_ops.storage.bucket import ImageBucket, StoredObject
from portfolio_ops.storage.layout import (
    DOWNLOAD_TOKENS_KEY,
    StorageLayout,
    base_name,
    download_url,
    file_name_of,
    first_download_token,
    normalize_editable_name,
    safe_extension,
    sanitize_download_name,
    stored_name,
)

log = get_logger(__name__)

GalleryScope = Literal["gallery", "n8n", "optimized"]
SourceCollection = Literal["gallery", "n8n", "optimized", "local"]

OCTET_STREAM = "application/octet-stream"
_MIME_EXTENSION: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/avif": "avif",
    "image/gif": "gif",
    "image/heic": "heic",
    "image/heif": "heif",
}


@dataclass(frozen=True, slots=True)
class IncomingFile:
    data: bytes
    file_name: str
    content_type: str | None


@dataclass(frozen=True, slots=True)
class SourceImage:
    data: bytes
    file_name: str
    content_type: str
    collection: SourceCollection
    path: str | None = None
    metadata_source: str | None = None


@dataclass(frozen=True, slots=True)
class Preview:
    data: bytes
    file_name: str
    headers: dict[str, str]


@dataclass(frozen=True, slots=True)
class Download:
    data: bytes
    file_name: str
    content_type: str


def now_ms() -> int:
    return int(time.time() * 1000)


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat().replace("+00:00", "Z")


def _as_bool(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def _mb(limit: int) -> int:
    return round(limit / (1024 * 1024))


def validate_upload(upload: IncomingFile, *, max_bytes: int, strict_type: bool = False) -> None:
    content_type = upload.content_type or ""
    if (strict_type or content_type) and not content_type.startswith("image/"):
        raise ImageRequestError(415, "The file must be an image.")
    if not upload.data:
        raise ImageRequestError(400, "The image is empty.")
    if len(upload.data) > max_bytes:
        raise ImageRequestError(413, f"The image exceeds the {_mb(max_bytes)}MB limit.")


class ImageService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        bucket: ImageBucket,
        settings: Settings,
        n8n: N8nWebhookClient | None = None,
    ) -> None:
        self._session = session
        self._bucket = bucket
        self._settings = settings
        self._n8n = n8n
        self._layout = StorageLayout(settings)

        self._images = ImageRepo(session)
        self._relations = RelationRepo(session)

    # ----------------------------------------------------------------- helpers

    def _url_for(self, obj: StoredObject) -> str | None:
        token = first_download_token(obj.metadata)
        return download_url(self._bucket.name, obj.path, token) if token else None

    def _object_item(self, obj: StoredObject) -> dict[str, Any] | None:
        url = self._url_for(obj)
        if url is None:
            return None
        name = obj.metadata.get("originalName") or file_name_of(obj.path)
        return {
            "path": obj.path,
            "name": name,
            "downloadURL": url,
            "contentType": obj.content_type,
            "formatLabel": image_format_label(obj.content_type, name),
            "previewable": is_previewable_image(obj.content_type, name),
            "sizeBytes": obj.size,
            "createdAt": iso(obj.time_created),
            "updatedAt": iso(obj.updated),
        }

    def _image_item(self, image: Image) -> dict[str, Any]:
        return {
            "id": str(image.id),
            "slug": build_optimized_slug(str(image.id), image.optimized_name),
            "path": image.optimized_path,
            "name": image.optimized_name,
            "downloadURL": download_url(
                self._bucket.name, image.optimized_path, image.optimized_token
            ),
            "contentType": image.optimized_mime,
            "formatLabel": image_format_label(image.optimized_mime, image.optimized_name),
            "previewable": is_previewable_image(image.optimized_mime, image.optimized_name),
            "sizeBytes": image.optimized_bytes,
            "createdAt": iso(image.created_at),
            "updatedAt": iso(image.updated_at),
        }

    async def _store(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        metadata: dict[str, str],
    ) -> tuple[StoredObject, str]:
        token = str(uuid.uuid4())
        stored = await self._bucket.save(
            path, data, content_type=content_type, metadata={DOWNLOAD_TOKENS_KEY: token, **metadata}
        )
        return stored, token

    async def _record(self, uid: str, source: str, target: str, kind: RelationKind) -> None:
        await self._relations.record(user_id=uid, source_path=source, target_path=target, kind=kind)
        log.info("relation_recorded", source=source, target=target, kind=kind.value)

    async def _read_stored(self, uid: str, path: str, folders: list[str]) -> SourceImage:
        prefixes = [self._layout.prefix(uid, folder) for folder in folders]
        if not any(path.startswith(prefix) for prefix in prefixes):
            raise ImageRequestError(403, "You are not allowed to use this file.")

        obj = await self._bucket.stat(path)
        if obj is None:
            raise ImageRequestError(404, "The selected image does not exist.")
        if obj.size is not None and obj.size > self._settings.max_upload_bytes:
            raise ImageRequestError(
                413, f"The image exceeds the {_mb(self._settings.max_upload_bytes)}MB limit."
            )

        data = await self._bucket.download(path)
        collection = self._layout.collection_for(path)
        return SourceImage(
            data=data,
            file_name=obj.metadata.get("originalName") or file_name_of(path),
            content_type=obj.content_type or OCTET_STREAM,
            collection=collection if collection in ("gallery", "n8n", "optimized") else "local",
            path=path,
            metadata_source=obj.metadata.get("source"),
        )

    # --------------------------------------------------------- optimized images

    async def list_optimized(self, uid: str) -> list[dict[str, Any]]:
        rows = await self._images.list_live(uid, limit=self._settings.image_list_limit)
        return [self._image_item(row) for row in rows]

    async def optimize_and_store(
        self, uid: str, *, upload: IncomingFile | None = None, source_path: str | None = None
    ) -> dict[str, Any]:
        s = self._settings
        if upload is not None:
            validate_upload(upload, max_bytes=s.max_upload_bytes)
            source = SourceImage(
                data=upload.data,
                file_name=upload.file_name or f"image-{now_ms()}",
                content_type=upload.content_type or OCTET_STREAM,
                collection="local",
            )
        elif source_path:
            source = await self._read_stored(
                uid,
                source_path,
                [s.image_gallery_folder, s.image_n8n_folder, s.image_optimized_folder],
            )
            if not source.content_type.startswith("image/"):
                raise ImageRequestError(415, "The file must be an image.")
        else:
            raise ImageRequestError(400, "Send a file in the image or file field, or a sourcePath.")

        output = await run_in_threadpool(
            processing.optimize,
            source.data,
            format=s.optimized_format,
            quality=s.optimized_quality,
            effort=s.optimized_effort,
            max_dimension=s.max_dimension,
        )
        output_mime = processing.FORMAT_MIME[s.optimized_format]
        output_ext = processing.FORMAT_EXTENSION[s.optimized_format]

        ts = now_ms()
        base = base_name(source.file_name)
        optimized_name = f"{ts}-{base}.{output_ext}"
        optimized_path = f"{self._layout.prefix(uid, s.image_optimized_folder)}{optimized_name}"

        original_token: str | None = None
        if source.path is None:
            original_path = (
                f"{self._layout.prefix(uid, s.image_originals_folder)}"
                f"{stored_name(ts, source.file_name)}"
            )
            _, original_token = await self._store(
                original_path,
                source.data,
                content_type=source.content_type,
                metadata={"source": "original-upload", "uploadedAt": iso(datetime.now(UTC)) or ""},
            )
        else:
            original_path = source.path

        provenance = {
            "sourceCollection": source.collection,
            "sourceWasN8n": "true" if source.collection == "n8n" else "false",
        }
        if source.path is not None:
            provenance["sourceStoragePath"] = source.path

        _, optimized_token = await self._store(
            optimized_path,
            output,
            content_type=output_mime,
            metadata={
                "originalName": source.file_name,
                "originalPath": original_path,
                "originalBytes": str(len(source.data)),
                "optimizedBytes": str(len(output)),
                "optimizedAt": iso(datetime.now(UTC)) or "",
                "source": RelationKind.optimized.value,
                **provenance,
            },
        )

        image = await self._images.create(
            user_id=uid,
            original_name=source.file_name,
            optimized_name=optimized_name,
            original_path=original_path,
            optimized_path=optimized_path,
            original_token=original_token,
            optimized_token=optimized_token,
            original_mime=source.content_type,
            optimized_mime=output_mime,
            original_bytes=len(source.data),
            optimized_bytes=len(output),
        )
        saved = max(0, len(source.data) - len(output))
        await self._images.add_stat(
            image_id=image.id,
            engine=f"pillow-{s.optimized_format.lower()}",
            quality=s.optimized_quality,
            effort=s.optimized_effort,
            saved_bytes=saved,
            saved_percent=lineage.saved_percent(len(source.data), saved) or 0.0,
        )
        if source.path is not None:
            await self._record(uid, source.path, optimized_path, RelationKind.optimized)
        await self._session.commit()

        log.info(
            "image_optimized",
            image_id=str(image.id),
            source_collection=source.collection,
            original_bytes=len(source.data),
            optimized_bytes=len(output),
        )
        original_url = (
            download_url(self._bucket.name, original_path, original_token)
            if original_token
            else None
        )
        return {
            "ok": True,
            "image": self._image_item(image),
            "original": {
                "path": original_path,
                "name": source.file_name,
                "downloadURL": original_url,
                "contentType": source.content_type,
                "sizeBytes": len(source.data),
            },
        }

    async def delete_optimized(self, uid: str, path: str) -> None:
        path = path.strip()
        if not path:
            raise ImageRequestError(400, "Missing path of the file to delete.")
        if not path.startswith(self._layout.root_prefix(uid)):
            raise ImageRequestError(403, "You are not allowed to delete this file.")

        removed = [path]
        image = await self._images.find_live_by_optimized_path(user_id=uid, path=path)
        if image is not None:
            await self._bucket.delete(image.optimized_path)
            # Storage-sourced images point at objects that still belong to their folder.
            originals = self._layout.prefix(uid, self._settings.image_originals_folder)
            if image.original_path.startswith(originals):
                await self._bucket.delete(image.original_path)
                removed.append(image.original_path)
            await self._images.soft_delete(image)
        else:
            await self._bucket.delete(path)

        for removed_path in removed:
            await self._relations.forget(user_id=uid, path=removed_path)
        await self._session.commit()
        log.info("image_deleted", path=path, soft_deleted=image is not None)

    async def preview(self, upload: IncomingFile) -> Preview:
        s = self._settings
        validate_upload(upload, max_bytes=s.max_upload_bytes, strict_type=True)
        info = await run_in_threadpool(processing.probe, upload.data)
        output = await run_in_threadpool(
            processing.optimize,
            upload.data,
            format="WEBP",
            quality=s.preview_quality,
            effort=s.optimized_effort,
            max_dimension=s.max_dimension,
        )
        output_name = f"{base_name(upload.file_name)}.webp"
        return Preview(
            data=output,
            file_name=output_name,
            headers={
                "X-Original-Name": quote(upload.file_name),
                "X-Original-Size": str(len(upload.data)),
                "X-Original-Format": (info.format or upload.content_type or "unknown").lower(),
                "X-Optimized-Size": str(len(output)),
                "X-Optimized-Format": "webp",
                "X-Optimized-Width": str(info.width),
                "X-Optimized-Height": str(info.height),
            },
        )

    async def detail(self, uid: str, image_id_or_slug: str) -> dict[str, Any]:
        raw_id = parse_image_id_from_slug(image_id_or_slug)
        if not raw_id:
            raise ImageRequestError(400, "Missing image id.")
        try:
            image_id = uuid.UUID(raw_id)
        except ValueError:
            raise ImageRequestError(404, "The optimized image was not found.") from None

        image = await self._images.get_live(image_id=image_id, user_id=uid)
        if image is None:
            raise ImageRequestError(404, "The optimized image was not found.")

        optimized = await self._bucket.stat(image.optimized_path)
        source_collection: str | None = None
        source_path: str | None = None
        source_was_n8n = False
        if optimized is not None:
            raw_collection = optimized.metadata.get("sourceCollection")
            if raw_collection in ("gallery", "n8n", "optimized", "local"):
                source_collection = raw_collection
            source_path = optimized.metadata.get("sourceStoragePath")
            source_was_n8n = (
                _as_bool(optimized.metadata.get("sourceWasN8n")) or source_collection == "n8n"
            )

        paths = await lineage.walk(self._relations, user_id=uid, start_path=source_path)
        originals = self._layout.prefix(uid, self._settings.image_originals_folder)
        stored_original = image.original_path.startswith(originals)
        if not paths and stored_original and image.original_path:
            paths.append(image.original_path)
        if image.optimized_path not in paths:
            paths.append(image.optimized_path)

        nodes = await lineage.build_nodes(
            paths,
            image=image,
            layout=self._layout,
            bucket_name=self._bucket.name,
            read_snapshot=self._bucket.stat,
            stored_original=stored_original,
        )

        stat = await self._images.latest_stat(image.id)
        if stat is not None:
            saved_bytes, saved_pct = stat.saved_bytes, stat.saved_percent
        else:
            saved_bytes = max(0, image.original_bytes - image.optimized_bytes)
            saved_pct = lineage.saved_percent(image.original_bytes, saved_bytes) or 0.0

        return {
            "ok": True,
            "image": {
                **self._image_item(image),
                "originalName": image.original_name,
                "originalPath": image.original_path,
                "originalContentType": image.original_mime,
                "originalSizeBytes": image.original_bytes,
                "savedBytes": saved_bytes,
                "savedPercent": saved_pct,
                "sourceCollection": source_collection,
                "sourceStoragePath": source_path,
                "sourceWasN8n": source_was_n8n,
                "optimizationStats": {
                    "id": str(stat.id),
                    "engine": stat.engine,
                    "quality": stat.quality,
                    "effort": stat.effort,
                    "createdAt": iso(stat.created_at),
                }
                if stat is not None
                else None,
            },
            "lineage": [node.as_dict() for node in nodes],
            "transitions": lineage.build_transitions(nodes),
        }

    # ---------------------------------------------------------------- gallery

    def _scope_folder(self, scope: GalleryScope) -> str:
        s = self._settings
        return {
            "gallery": s.image_gallery_folder,
            "n8n": s.image_n8n_folder,
            "optimized": s.image_optimized_folder,
        }[scope]

    async def list_folder(self, uid: str, scope: GalleryScope = "gallery") -> list[dict[str, Any]]:
        prefix = self._layout.prefix(uid, self._scope_folder(scope))
        objects = await self._bucket.list_objects(prefix)
        items: list[dict[str, Any]] = []
        for obj in objects:
            item = self._object_item(obj)
            if item is None:
                continue
            if scope == "gallery":
                item.update(await self._gallery_flags(uid, obj))
            elif scope == "n8n":
                item.update(await self._n8n_flags(uid, obj))
            items.append(item)

        epoch = datetime.min.replace(tzinfo=UTC)

        def _created(obj_item: dict[str, Any]) -> datetime:
            raw = obj_item["createdAt"]
            return datetime.fromisoformat(raw.replace("Z", "+00:00")) if raw else epoch

        items.sort(key=_created, reverse=True)
        return items

    async def _gallery_flags(self, uid: str, obj: StoredObject) -> dict[str, Any]:
        variant = await self._relations.latest_child(
            user_id=uid,
            source_path=obj.path,
            target_prefix=self._layout.prefix(uid, self._settings.image_n8n_folder),
        )
        name = obj.metadata.get("originalName") or file_name_of(obj.path)
        return {
            "needsN8nTransformation": not is_n8n_supported_format(obj.content_type, name),
            "n8nVariantPath": variant.target_path if variant is not None else None,
        }

    async def _n8n_flags(self, uid: str, obj: StoredObject) -> dict[str, Any]:
        chain = await lineage.walk(self._relations, user_id=uid, start_path=obj.path)
        gallery = self._layout.prefix(uid, self._settings.image_gallery_folder)
        root = chain[0] if chain else None
        derived_sources = (RelationKind.n8n_compatible.value, RelationKind.n8n_response.value)
        return {
            "isN8nDerived": obj.metadata.get("source") in derived_sources or len(chain) > 1,
            "sourceGalleryPath": root if root and root.startswith(gallery) else None,
        }

    async def upload_to_gallery(self, uid: str, upload: IncomingFile) -> dict[str, Any]:
        validate_upload(upload, max_bytes=self._settings.max_upload_bytes)
        path = (
            f"{self._layout.prefix(uid, self._settings.image_gallery_folder)}"
            f"{stored_name(now_ms(), upload.file_name)}"
        )
        stored, _ = await self._store(
            path,
            upload.data,
            content_type=upload.content_type or OCTET_STREAM,
            metadata={"originalName": upload.file_name, "uploadedAt": iso(datetime.now(UTC)) or ""},
        )
        log.info("gallery_uploaded", path=path, size_bytes=len(upload.data))
        item = self._object_item(stored)
        if item is None:
            raise ImageRequestError(500, "The stored image has no download token.")
        return item

    def _require_gallery_path(self, uid: str, path: str, action: str) -> str:
        path = path.strip()
        if not path:
            raise ImageRequestError(400, "Missing image path.")
        if not path.startswith(self._layout.prefix(uid, self._settings.image_gallery_folder)):
            raise ImageRequestError(403, f"You are not allowed to {action} this file.")
        return path

    async def delete_from_gallery(self, uid: str, path: str) -> None:
        path = self._require_gallery_path(uid, path, "delete")
        await self._bucket.delete(path)
        forgotten = await self._relations.forget(user_id=uid, path=path)
        await self._session.commit()
        log.info("gallery_deleted", path=path, relations_forgotten=forgotten)

    async def rename_in_gallery(self, uid: str, path: str, raw_name: str) -> dict[str, Any]:
        if not path.strip():
            raise ImageRequestError(400, "Missing image path.")
        try:
            name = normalize_editable_name(raw_name)
        except ValueError as e:
            raise ImageRequestError(400, str(e)) from e
        path = self._require_gallery_path(uid, path, "rename")

        try:
            updated = await self._bucket.update_metadata(
                path, {"originalName": name, "renamedAt": iso(datetime.now(UTC)) or ""}
            )
        except FileNotFoundError:
            raise ImageRequestError(404, "The image does not exist.") from None

        item = self._object_item(updated)
        if item is None:
            raise ImageRequestError(500, "The renamed image has no download token.")
        return item

    async def download(self, uid: str, path: str, requested_name: str | None) -> Download:
        path = path.strip()
        if not path:
            raise ImageRequestError(400, "Missing file path.")
        if not any(path.startswith(prefix) for prefix in self._layout.downloadable_prefixes(uid)):
            raise ImageRequestError(403, "You are not allowed to download this file.")

        obj = await self._bucket.stat(path)
        if obj is None:
            raise ImageRequestError(404, "The file does not exist.")
        data = await self._bucket.download(path)
        file_name = sanitize_download_name(
            (requested_name or "").strip() or obj.metadata.get("originalName"),
            file_name_of(path) or "image",
        )
        return Download(
            data=data, file_name=file_name, content_type=obj.content_type or OCTET_STREAM
        )

    # -------------------------------------------------------------- n8n relay

    async def relay_copy(
        self,
        uid: str,
        *,
        upload: IncomingFile | None = None,
        gallery_path: str | None = None,
        optimized_path: str | None = None,
        force_jpeg: bool = False,
    ) -> dict[str, Any]:
        if self._n8n is None:
            raise RuntimeError("ImageService was built without an n8n client")

        s = self._settings
        if upload is not None:
            validate_upload(upload, max_bytes=s.max_upload_bytes)
            source = SourceImage(
                data=upload.data,
                file_name=upload.file_name or f"image-{now_ms()}",
                content_type=upload.content_type or OCTET_STREAM,
                collection="local",
            )
        elif gallery_path and gallery_path.strip():
            source = await self._read_stored(uid, gallery_path.strip(), [s.image_gallery_folder])
        elif optimized_path and optimized_path.strip():
            source = await self._read_stored(
                uid, optimized_path.strip(), [s.image_optimized_folder]
            )
        else:
            raise ImageRequestError(400, "Select a local, gallery or optimized image.")

        compatible_path: str | None = None
        converted = False
        needs_jpeg = force_jpeg or not is_n8n_supported_format(
            source.content_type, source.file_name
        )
        if source.path is not None and needs_jpeg:
            source, compatible_path = await self._store_compatible(uid, source, source.path)
            converted = True
            # The copy and its relation persist even when the webhook call fails.
            await self._session.commit()

        reply = await self._n8n.send_image(
            data=source.data,
            file_name=source.file_name,
            content_type=source.content_type,
            source=source.collection,
            uid=uid,
        )

        generated_path: str | None = None
        if reply.is_image and reply.body:
            generated_path = await self._store_generated(
                uid, source, reply.content_type, reply.body
            )

        await self._session.commit()
        log.info(
            "n8n_relayed",
            source=source.collection,
            converted=converted,
            generated=generated_path is not None,
        )
        return {
            "ok": True,
            "source": source.collection,
            "fileName": source.file_name,
            "wasConvertedToJpeg": converted,
            "compatiblePath": compatible_path,
            "generatedPath": generated_path,
            "n8n": reply.payload,
        }

    async def _store_compatible(
        self, uid: str, source: SourceImage, source_path: str
    ) -> tuple[SourceImage, str]:
        jpeg = await run_in_threadpool(
            processing.to_jpeg, source.data, quality=self._settings.n8n_jpeg_quality
        )
        file_name = f"{base_name(source.file_name)}.jpg"
        path = (
            f"{self._layout.prefix(uid, self._settings.image_n8n_folder)}"
            f"{stored_name(now_ms(), file_name)}"
        )
        await self._store(
            path,
            jpeg,
            content_type="image/jpeg",
            metadata={
                "originalName": file_name,
                "source": RelationKind.n8n_compatible.value,
                "sourceStoragePath": source_path,
                "convertedAt": iso(datetime.now(UTC)) or "",
            },
        )
        await self._record(uid, source_path, path, RelationKind.n8n_compatible)
        compatible = SourceImage(
            data=jpeg,
            file_name=file_name,
            content_type="image/jpeg",
            collection=source.collection,
            path=path,
            metadata_source=RelationKind.n8n_compatible.value,
        )
        return compatible, path

    async def _store_generated(
        self, uid: str, sent: SourceImage, content_type: str, body: bytes
    ) -> str:
        extension = _MIME_EXTENSION.get(content_type) or safe_extension(sent.file_name)
        file_name = f"{base_name(sent.file_name)}-n8n.{extension}"
        path = (
            f"{self._layout.prefix(uid, self._settings.image_n8n_folder)}"
            f"{stored_name(now_ms(), file_name)}"
        )
        metadata = {
            "originalName": file_name,
            "source": RelationKind.n8n_response.value,
            "generatedAt": iso(datetime.now(UTC)) or "",
        }
        if sent.path is not None:
            metadata["sourceStoragePath"] = sent.path
        await self._store(path, body, content_type=content_type, metadata=metadata)
        if sent.path is not None:
            await self._record(uid, sent.path, path, RelationKind.n8n_response)
        return path


# --- Module Notes -----------------------------------------------------------
# Relation rows are written on the same session as the `Image` row, so one commit
# per operation keeps lineage and image state consistent.
