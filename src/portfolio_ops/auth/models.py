"""
portfolio_ops.auth.models

Auth domain models.

Responsibilities:
- Define the validated session identity injected into endpoints.
- Define the result of registering a new session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from portfolio_ops.db.models import Role


@dataclass(frozen=True, slots=True)
class ValidatedSession:
    """
    Caller identity after token verification and session lookup.
    """

    uid: str
    email: str
    name: str
    avatar_url: str
    role: Role

    def as_dict(self) -> dict[str, str]:
        return {
            "uid": self.uid,
            "email": self.email,
            "name": self.name,
            "avatarUrl": self.avatar_url,
            "role": self.role.value,
        }


@dataclass(frozen=True, slots=True)
class RegisteredSession:
    uid: str
    email: str
    name: str
    avatar_url: str | None
    expires_at: datetime
