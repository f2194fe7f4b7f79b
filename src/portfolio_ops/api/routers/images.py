"""
portfolio_ops.api.routers.images

Optimized image endpoints.

Responsibilities:
- List, create and delete the caller's optimized images.
- Stateless WebP previews.
- Optimized image detail with lineage.
- Attachment downloads from the caller's image folders.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from portfolio_ops.api.deps import image_service
from portfolio_ops.api.errors import NO_STORE, domain_errors
from portfolio_ops.api.routers._uploads import PathRequest, content_disposition, incoming_file
from portfolio_ops.auth.deps import require_collaborator
from portfolio_ops.auth.models import ValidatedSession
from portfolio_ops.images.errors import ImageRequestError
from portfolio_ops.images.service import ImageService

router = APIRouter(prefix="/api/images", tags=["images"])


@router.get("")
async def list_images(
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        return {"ok": True, "images": await svc.list_optimized(principal.uid)}


@router.post("")
async def create_image(
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    image: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    source_path: str | None = Form(default=None, alias="sourcePath"),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    upload = await incoming_file(image, file)
    with domain_errors():
        return await svc.optimize_and_store(
            principal.uid, upload=upload, source_path=(source_path or "").strip() or None
        )


@router.delete("")
async def delete_image(
    response: Response,
    body: PathRequest,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        await svc.delete_optimized(principal.uid, body.path or "")
    return {"ok": True}


@router.post("/optimize")
async def preview_image(
    principal: ValidatedSession = Depends(require_collaborator),
    image: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    svc: ImageService = Depends(image_service),
) -> Response:
    upload = await incoming_file(image, file)
    with domain_errors():
        if upload is None:
            raise ImageRequestError(400, "Send a file in the image or file field.")
        preview = await svc.preview(upload)
    return Response(
        content=preview.data,
        media_type="image/webp",
        headers={
            **NO_STORE,
            **preview.headers,
            "Content-Disposition": content_disposition("inline", preview.file_name),
        },
    )


@router.get("/optimize/{image_id}")
async def image_detail(
    image_id: str,
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        return await svc.detail(principal.uid, image_id)


@router.get("/download")
async def download_image(
    path: str = "",
    name: str | None = None,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> Response:
    with domain_errors():
        download = await svc.download(principal.uid, path, name)
    return Response(
        content=download.data,
        media_type=download.content_type,
        headers={
            **NO_STORE,
            "Content-Disposition": content_disposition("attachment", download.file_name),
        },
    )
