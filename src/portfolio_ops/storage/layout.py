"""
portfolio_ops.storage.layout

Per-user object layout and naming rules.

Responsibilities:
- Build folder prefixes under users/<uid>/<root>/ and classify paths by folder.
- Sanitize uploaded file names into stored names.
- Build Firebase Storage token download URLs.
"""

from __future__ import annotations

import re
from typing import Literal
from urllib.parse import quote

from portfolio_ops.settings import Settings

Collection = Literal["gallery", "n8n", "optimized", "original", "unknown"]

DOWNLOAD_TOKENS_KEY = "firebaseStorageDownloadTokens"

_EXTENSION_RE = re.compile(r"\.[^.]+$")
_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9\-_]")
_DASH_RUN_RE = re.compile(r"-+")
_UNSAFE_DOWNLOAD_RE = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RE = re.compile(r"\s+")

MAX_EDITABLE_NAME = 120
MAX_DOWNLOAD_NAME = 160


class StorageLayout:
    def __init__(self, settings: Settings) -> None:
        self.root = settings.image_root_folder
        self.gallery = settings.image_gallery_folder
        self.n8n = settings.image_n8n_folder
        self.optimized = settings.image_optimized_folder
        self.originals = settings.image_originals_folder

    def root_prefix(self, uid: str) -> str:
        return f"users/{uid}/{self.root}/"

    def prefix(self, uid: str, folder: str) -> str:
        return f"{self.root_prefix(uid)}{folder}/"

    def downloadable_prefixes(self, uid: str) -> list[str]:
        return [
            self.prefix(uid, folder)
            for folder in (self.gallery, self.n8n, self.optimized, self.originals)
        ]

    def collection_for(self, path: str) -> Collection:
        if f"/{self.gallery}/" in path:
            return "gallery"
        if f"/{self.n8n}/" in path:
            return "n8n"
        if f"/{self.optimized}/" in path:
            return "optimized"
        if f"/{self.originals}/" in path:
            return "original"
        return "unknown"


def base_name(file_name: str) -> str:
    trimmed = file_name.strip()
    if not trimmed:
        return "image"
    cleaned = _UNSAFE_NAME_RE.sub("-", _EXTENSION_RE.sub("", trimmed))
    return _DASH_RUN_RE.sub("-", cleaned).strip("-") or "image"


def safe_extension(file_name: str) -> str:
    if "." not in file_name:
        return "bin"
    extension = file_name.rsplit(".", 1)[1].lower()
    return re.sub(r"[^a-z0-9]", "", extension) or "bin"


def stored_name(timestamp_ms: int, file_name: str, extension: str | None = None) -> str:
    return f"{timestamp_ms}-{base_name(file_name)}.{extension or safe_extension(file_name)}"


def file_name_of(path: str) -> str:
    return path.rsplit("/", 1)[-1] or path


def sanitize_download_name(value: str | None, fallback: str) -> str:
    candidate = (value or fallback).strip()
    if not candidate:
        return fallback
    candidate = _UNSAFE_DOWNLOAD_RE.sub("-", candidate)
    return _WHITESPACE_RE.sub(" ", candidate)[:MAX_DOWNLOAD_NAME]


def normalize_editable_name(raw_name: str) -> str:
    trimmed = raw_name.strip()
    if not trimmed:
        raise ValueError("The name cannot be empty.")
    if len(trimmed) > MAX_EDITABLE_NAME:
        raise ValueError(f"The name cannot exceed {MAX_EDITABLE_NAME} characters.")
    return trimmed


def first_download_token(metadata: dict[str, str] | None) -> str | None:
    raw = (metadata or {}).get(DOWNLOAD_TOKENS_KEY) or ""
    token = str(raw).split(",")[0].strip()
    return token or None


def download_url(bucket_name: str, path: str, token: str) -> str:
    return (
        f"https://firebasestorage.googleapis.com/v0/b/{bucket_name}/o/"
        f"{quote(path, safe='')}?alt=media&token={token}"
    )
