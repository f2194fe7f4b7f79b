from __future__ import annotations

from urllib.parse import quote

from fastapi import UploadFile
from pydantic import BaseModel

from portfolio_ops.images.service import IncomingFile


class PathRequest(BaseModel):
    path: str | None = None


async def incoming_file(*candidates: UploadFile | None) -> IncomingFile | None:
    # Forms may name the file field either `image` or `file`.
    for upload in candidates:
        if upload is not None and upload.filename is not None:
            return IncomingFile(
                data=await upload.read(),
                file_name=upload.filename,
                content_type=upload.content_type,
            )
    return None


def content_disposition(kind: str, file_name: str) -> str:
    fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "'")
    return f"{kind}; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
