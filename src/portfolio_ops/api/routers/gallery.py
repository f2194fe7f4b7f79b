"""
portfolio_ops.api.routers.gallery

Storage-backed gallery endpoints.

Responsibilities:
- List the gallery, n8n or optimized folder with lineage flags.
- Upload, delete and rename gallery objects.
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, File, Response, UploadFile
from pydantic import BaseModel

from portfolio_ops.api.deps import image_service
from portfolio_ops.api.errors import NO_STORE, domain_errors
from portfolio_ops.api.routers._uploads import PathRequest, incoming_file
from portfolio_ops.auth.deps import require_collaborator
from portfolio_ops.auth.models import ValidatedSession
from portfolio_ops.images.errors import ImageRequestError
from portfolio_ops.images.service import ImageService

router = APIRouter(prefix="/api/images/gallery", tags=["gallery"])


class RenameRequest(BaseModel):
    path: str | None = None
    name: str | None = None


@router.get("")
async def list_gallery(
    response: Response,
    scope: Literal["gallery", "n8n", "optimized"] = "gallery",
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        return {"ok": True, "scope": scope, "images": await svc.list_folder(principal.uid, scope)}


@router.post("")
async def upload_gallery_image(
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    image: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    upload = await incoming_file(image, file)
    with domain_errors():
        if upload is None:
            raise ImageRequestError(400, "Send a file in the image or file field.")
        return {"ok": True, "image": await svc.upload_to_gallery(principal.uid, upload)}


@router.delete("")
async def delete_gallery_image(
    response: Response,
    body: PathRequest,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        await svc.delete_from_gallery(principal.uid, body.path or "")
    return {"ok": True}


@router.patch("")
async def rename_gallery_image(
    response: Response,
    body: RenameRequest,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        item = await svc.rename_in_gallery(principal.uid, body.path or "", body.name or "")
    return {"ok": True, "image": item}
