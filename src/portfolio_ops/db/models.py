"""
portfolio_ops.db.models

Core persistence schema.

Responsibilities:
- Define ORM models for the dashboard:
  - User / FirebaseSession: verified identities and their registered session tokens
  - AccessConfig / AuthorizedEmail: who may sign in at all
  - Image / OptimizationStat: optimized outputs and how they were produced
  - ImageRelation: parent -> child links between storage objects (image lineage)
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid as SAUuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portfolio_ops.db.base import Base


def utcnow() -> datetime:
    # Naive UTC everywhere; SQLite drops tzinfo and comparisons must stay consistent.
    return datetime.now(UTC).replace(tzinfo=None)


class Role(enum.StrEnum):
    reader = "READER"
    collaborator = "COLLABORATOR"
    admin = "ADMIN"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK: dict[Role, int] = {
    Role.reader: 1,
    Role.collaborator: 2,
    Role.admin: 3,
}


class User(Base):
    __tablename__ = "users"

    # Firebase uid
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False, default=Role.reader)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    sessions: Mapped[list[FirebaseSession]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )


class FirebaseSession(Base):
    __tablename__ = "firebase_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("users.id"), nullable=False, index=True
    )
    # The Firebase ID token itself is the session key.
    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider: Mapped[str] = mapped_column(String(64), nullable=False, default="google.com")

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    user: Mapped[User] = relationship(back_populates="sessions")


class AccessConfig(Base):
    __tablename__ = "access_config"

    # Singleton row, id="default".
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default="default")
    require_email_allowlist: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_unverified_emails: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)


class AuthorizedEmail(Base):
    __tablename__ = "authorized_emails"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class Image(Base):
    __tablename__ = "images"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    original_name: Mapped[str] = mapped_column(String(512), nullable=False)
    optimized_name: Mapped[str] = mapped_column(String(512), nullable=False)
    original_path: Mapped[str] = mapped_column(Text, nullable=False)
    optimized_path: Mapped[str] = mapped_column(Text, nullable=False)
    original_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    optimized_token: Mapped[str] = mapped_column(String(64), nullable=False)
    original_mime: Mapped[str] = mapped_column(String(128), nullable=False)
    optimized_mime: Mapped[str] = mapped_column(String(128), nullable=False)
    original_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    optimized_bytes: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
    # Soft delete: listing and detail lookups ignore rows with deleted_at set.
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    stats: Mapped[list[OptimizationStat]] = relationship(
        back_populates="image", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_images_user_created", "user_id", "created_at"),)


class OptimizationStat(Base):
    __tablename__ = "optimization_stats"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    image_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("images.id"), nullable=False, index=True
    )
    engine: Mapped[str] = mapped_column(String(32), nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    effort: Mapped[int] = mapped_column(Integer, nullable=False)
    saved_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    saved_percent: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    image: Mapped[Image] = relationship(back_populates="stats")


class RelationKind(enum.StrEnum):
    # Also written to object metadata as `source`; treat values as stable.
    n8n_compatible = "n8n-compatible"
    n8n_response = "n8n-response"
    optimized = "optimized"


class ImageRelation(Base):
    __tablename__ = "image_relations"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    source_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    target_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    kind: Mapped[RelationKind] = mapped_column(Enum(RelationKind), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "source_path", "target_path", name="uq_relation_edge"),
        # Parent lookups walk target -> source.
        Index("ix_relations_user_target", "user_id", "target_path"),
        Index("ix_relations_user_source", "user_id", "source_path"),
    )


# --- Module Notes -----------------------------------------------------------
# Paths stored here are bucket object names (users/<uid>/<root>/<folder>/<file>),
# never download URLs; URLs are rebuilt from tokens on read.
