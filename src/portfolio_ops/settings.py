"""
portfolio_ops.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Accept the conventional unprefixed names for Firebase, GitHub, BigQuery and n8n.
- Normalize pasted credentials (stray quotes, trailing commas, escaped newlines).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ID_RE = re.compile(r"[a-z][a-z0-9-]*-[a-z0-9-]{2,}")
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_WRAPPING_QUOTE_START = re.compile(r"^\\?[\"']")
_WRAPPING_QUOTE_END = re.compile(r"\\?[\"']$")


def normalize_scalar_env(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        return normalized

    while normalized.endswith(","):
        normalized = normalized[:-1].strip()

    # Values pasted from JSON/.env files may arrive wrapped in (escaped) quotes, even twice.
    previous = None
    while normalized != previous:
        previous = normalized
        normalized = _WRAPPING_QUOTE_START.sub("", normalized)
        normalized = _WRAPPING_QUOTE_END.sub("", normalized).strip()

    return normalized


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Settings(BaseSettings):
    """
    Single settings object injected across layers.

    Every field reads `PORTFOLIO_<FIELD>`; credentials for managed services also
    read the names their own tooling uses.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Environment controls auto-init of DB tables and the Secure cookie flag.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "portfolio-ops"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./portfolio.db"

    # Firebase Admin (auth + storage)
    firebase_project_id: str | None = Field(
        default=None,
        validation_alias=_env(
            "PORTFOLIO_FIREBASE_PROJECT_ID",
            "FIREBASE_PROJECT_ID",
            "NEXT_PUBLIC_FIREBASE_PROJECT_ID",
        ),
    )
    firebase_client_email: str | None = Field(
        default=None,
        validation_alias=_env("PORTFOLIO_FIREBASE_CLIENT_EMAIL", "FIREBASE_CLIENT_EMAIL"),
    )
    firebase_private_key: str | None = Field(
        default=None,
        repr=False,
        validation_alias=_env("PORTFOLIO_FIREBASE_PRIVATE_KEY", "FIREBASE_PRIVATE_KEY"),
    )
    firebase_storage_bucket: str | None = Field(
        default=None,
        validation_alias=_env(
            "PORTFOLIO_FIREBASE_STORAGE_BUCKET",
            "FIREBASE_STORAGE_BUCKET",
            "NEXT_PUBLIC_FIREBASE_STORAGE_BUCKET",
        ),
    )

    # Session cookie
    session_cookie_name: str = "firebase_id_token"
    session_cookie_max_age: int = 3600

    # Image storage layout (all objects live under users/<uid>/<root>/<folder>/)
    image_root_folder: str = "portfolio-images"
    image_gallery_folder: str = "gallery"
    image_n8n_folder: str = "n8n"
    image_optimized_folder: str = "optimized"
    image_originals_folder: str = "originals"

    # Image processing
    max_upload_bytes: int = 40 * 1024 * 1024
    max_dimension: int = 2400
    optimized_format: Literal["AVIF", "WEBP"] = "AVIF"
    optimized_quality: int = 52
    optimized_effort: int = 4
    preview_quality: int = 82
    n8n_jpeg_quality: int = 90
    image_list_limit: int = 300

    # n8n relay
    n8n_copy_webhook_url: str = Field(
        default="http://localhost:5678/webhook/image-copies",
        validation_alias=_env("PORTFOLIO_N8N_COPY_WEBHOOK_URL", "N8N_COPY_WEBHOOK_URL"),
    )
    n8n_timeout_seconds: float = 120.0

    # Billing (Cloud Billing export in BigQuery)
    billing_export_table: str | None = Field(
        default=None,
        validation_alias=_env("PORTFOLIO_BILLING_EXPORT_TABLE", "GOOGLE_BILLING_EXPORT_TABLE"),
    )
    billing_query_project_id: str | None = Field(
        default=None,
        validation_alias=_env(
            "PORTFOLIO_BILLING_QUERY_PROJECT_ID", "GOOGLE_BILLING_QUERY_PROJECT_ID"
        ),
    )
    billing_location: str | None = Field(
        default=None,
        validation_alias=_env("PORTFOLIO_BILLING_LOCATION", "GOOGLE_BILLING_BQ_LOCATION"),
    )

    # Landing (GitHub activity widgets)
    github_username: str = "davalbra"
    github_token: str | None = Field(
        default=None,
        repr=False,
        validation_alias=_env("PORTFOLIO_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"),
    )
    github_api_base_url: str = "https://api.github.com"
    github_cache_seconds: int = 1800
    pinned_repos: list[str] = Field(
        default_factory=lambda: ["davalbra", "profile", "lynxInit", "rsbuild-plugin-tailwindcss"]
    )

    @field_validator(
        "firebase_storage_bucket",
        "billing_query_project_id",
        "billing_location",
        "github_token",
        mode="before",
    )
    @classmethod
    def _scalar(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_scalar_env(str(value)) or None

    @field_validator("billing_export_table", mode="before")
    @classmethod
    def _table(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().strip("`").strip() or None

    @field_validator("firebase_project_id", mode="before")
    @classmethod
    def _project_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = normalize_scalar_env(str(value))
        match = _PROJECT_ID_RE.search(normalized)
        return (match.group(0) if match else normalized) or None

    @field_validator("firebase_client_email", mode="before")
    @classmethod
    def _client_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = normalize_scalar_env(str(value))
        match = _EMAIL_RE.search(normalized)
        return (match.group(0) if match else normalized) or None

    @field_validator("firebase_private_key", mode="before")
    @classmethod
    def _private_key(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_scalar_env(str(value)).replace("\\n", "\n").strip() or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Folder names are part of the stored object paths; changing them orphans existing
# objects from listings and lineage lookups.
