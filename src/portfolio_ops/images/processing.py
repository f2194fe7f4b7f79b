"""
portfolio_ops.images.processing

Pillow wrappers for probing, optimizing and converting images.

Responsibilities:
- Decode uploads once, honouring EXIF orientation.
- Fit images inside a bounding box without enlarging them.
- Encode AVIF/WebP outputs and JPEG copies for n8n.

All functions here are CPU bound and synchronous; callers run them in the threadpool.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from portfolio_ops.images.errors import ImageRequestError

FORMAT_MIME: dict[str, str] = {
    "AVIF": "image/avif",
    "WEBP": "image/webp",
    "JPEG": "image/jpeg",
}
FORMAT_EXTENSION: dict[str, str] = {"AVIF": "avif", "WEBP": "webp", "JPEG": "jpg"}


@dataclass(frozen=True, slots=True)
class ImageInfo:
    format: str | None
    width: int
    height: int


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageRequestError(422, "The file could not be decoded as an image.") from e
    return img


def probe(data: bytes) -> ImageInfo:
    img = _open(data)
    return ImageInfo(format=img.format, width=img.width, height=img.height)


def _prepared(data: bytes, max_dimension: int) -> Image.Image:
    img = ImageOps.exif_transpose(_open(data))
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        img = img.convert("RGBA" if has_alpha else "RGB")

    w, h = img.size
    long_edge = max(w, h)
    if long_edge > max_dimension:
        ratio = max_dimension / long_edge
        img = img.resize((max(1, int(w * ratio)), max(1, int(h * ratio))), Image.LANCZOS)
    return img


def optimize(
    data: bytes,
    *,
    format: str,
    quality: int,
    effort: int,
    max_dimension: int,
) -> bytes:
    img = _prepared(data, max_dimension)
    out = io.BytesIO()
    if format == "AVIF":
        # Pillow's AVIF speed runs opposite to effort: 0 is slowest/best.
        img.save(out, format="AVIF", quality=quality, speed=max(0, min(10, 9 - effort)))
    elif format == "WEBP":
        img.save(out, format="WEBP", quality=quality, method=max(0, min(6, effort)), exact=False)
    else:
        raise ValueError(f"Unsupported output format: {format}")
    return out.getvalue()


def to_jpeg(data: bytes, *, quality: int) -> bytes:
    img = ImageOps.exif_transpose(_open(data))
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        flat = Image.new("RGB", rgba.size, (255, 255, 255))
        flat.paste(rgba, mask=rgba.getchannel("A"))
        img = flat
    elif img.mode != "RGB":
        img = img.convert("RGB")

    out = io.BytesIO()
    img.save(out, format="JPEG", quality=quality, optimize=True)
    return out.getvalue()
