"""
portfolio_ops.images.formats

Format labels and capability checks derived from MIME types and file names.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

_MIME_LABELS: dict[str, str] = {
    "image/jpeg": "JPG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/avif": "AVIF",
    "image/heic": "HEIC",
    "image/heif": "HEIF",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
    "image/svg+xml": "SVG",
}

N8N_SUPPORTED_MIME_TYPES = frozenset(
    {"image/png", "image/jpeg", "image/webp", "image/heic", "image/heif"}
)

_EXTENSION_MIME: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
    "avif": "image/avif",
}

SLUG_MARKER = "--"
_SLUG_MAX = 64
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_EXTENSION_RE = re.compile(r"\.[^.]+$")


def normalize_mime(content_type: str | None) -> str:
    return (content_type or "").lower().split(";")[0].strip()


def extension_of(file_name: str | None) -> str:
    trimmed = (file_name or "").strip().lower()
    stem, dot, extension = trimmed.rpartition(".")
    if not dot or not extension:
        return ""
    return extension


def image_format_label(content_type: str | None = None, file_name: str | None = None) -> str:
    mime = normalize_mime(content_type)
    if mime in _MIME_LABELS:
        return _MIME_LABELS[mime]

    extension = extension_of(file_name)
    if extension == "jpeg":
        return "JPG"
    if extension:
        return extension.upper()

    if mime.startswith("image/"):
        return mime[len("image/") :].replace("+xml", "").upper() or "IMG"
    return "IMG"


def is_n8n_supported_format(content_type: str | None = None, file_name: str | None = None) -> bool:
    if normalize_mime(content_type) in N8N_SUPPORTED_MIME_TYPES:
        return True
    inferred = _EXTENSION_MIME.get(extension_of(file_name))
    return inferred in N8N_SUPPORTED_MIME_TYPES


def is_previewable_image(content_type: str | None, name: str) -> bool:
    # Browsers cannot render HEIC/HEIF inline.
    mime = (content_type or "").lower()
    if "heic" in mime or "heif" in mime:
        return False
    lowered = name.lower()
    return not (lowered.endswith(".heic") or lowered.endswith(".heif"))


def _slug_part(value: str) -> str:
    cleaned = _EXTENSION_RE.sub("", value.lower().strip())
    return _NON_ALNUM_RE.sub("-", cleaned).strip("-")[:_SLUG_MAX]


def build_optimized_slug(image_id: str, name: str) -> str:
    part = _slug_part(name or "image")
    return f"{part}{SLUG_MARKER}{image_id}" if part else str(image_id)


def parse_image_id_from_slug(slug: str) -> str:
    clean = unquote(slug or "").strip()
    if not clean:
        return ""
    _, marker, image_id = clean.rpartition(SLUG_MARKER)
    return image_id if marker else clean
