"""
portfolio_ops.api.routers.copies

n8n relay endpoint.

Responsibilities:
- Accept a local upload, a gallery path or an optimized path.
- Delegate conversion, relay and result storage to the image service.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from portfolio_ops.api.deps import image_service
from portfolio_ops.api.errors import NO_STORE, domain_errors
from portfolio_ops.api.routers._uploads import incoming_file
from portfolio_ops.auth.deps import require_collaborator
from portfolio_ops.auth.models import ValidatedSession
from portfolio_ops.images.service import ImageService

router = APIRouter(prefix="/api/images", tags=["n8n"])

_TRUTHY = ("1", "true", "yes", "on")


@router.post("/copies")
async def relay_copy(
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    image: UploadFile | None = File(default=None),
    file: UploadFile | None = File(default=None),
    gallery_path: str | None = Form(default=None, alias="galleryPath"),
    optimized_path: str | None = Form(default=None, alias="optimizedPath"),
    force_jpeg: str | None = Form(default=None, alias="forceJpegConversion"),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    upload = await incoming_file(image, file)
    with domain_errors():
        return await svc.relay_copy(
            principal.uid,
            upload=upload,
            gallery_path=gallery_path,
            optimized_path=optimized_path,
            force_jpeg=(force_jpeg or "").strip().lower() in _TRUTHY,
        )
