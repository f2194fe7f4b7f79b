"""
portfolio_ops.auth.session

Session registry service (transaction owner for auth writes).

Responsibilities:
- Register a verified Firebase ID token as a server-side session.
- Revoke sessions.
- Validate a token against the registry, the access policy and a minimum role.
- Extract the session token from a request's headers.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_ops.auth.errors import AccessDeniedError, InsufficientRoleError, InvalidSessionError
from portfolio_ops.auth.firebase import TokenVerifier
from portfolio_ops.auth.models import RegisteredSession, ValidatedSession
from portfolio_ops.auth.roles import has_min_role
from portfolio_ops.db.models import Role, utcnow
from portfolio_ops.db.repositories.access import AccessRepo
from portfolio_ops.db.repositories.sessions import SessionRepo
from portfolio_ops.db.repositories.users import UserRepo
from portfolio_ops.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=1)
DEFAULT_PROVIDER = "google.com"
DEFAULT_NAME = "User"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def cookie_token(cookie_header: str | None, cookie_name: str) -> str | None:
    if not cookie_header:
        return None
    for cookie in cookie_header.split(";"):
        name, _, value = cookie.strip().partition("=")
        if name == cookie_name:
            # Token values are base64url JWTs and may legitimately contain "=".
            return value or None
    return None


def extract_token(
    *, authorization: str | None, cookie_header: str | None, cookie_name: str
) -> str | None:
    return bearer_token(authorization) or cookie_token(cookie_header, cookie_name)


def _identity(decoded: dict[str, Any]) -> tuple[str, str, bool]:
    uid = str(decoded.get("uid") or decoded.get("sub") or "")
    if not uid:
        raise InvalidSessionError("Session token has no subject.")
    email = normalize_email(decoded.get("email") or f"{uid}@firebase.local")
    return uid, email, bool(decoded.get("email_verified", False))


class SessionService:
    def __init__(self, *, session: AsyncSession, verifier: TokenVerifier) -> None:
        self._session = session
        self._verifier = verifier

        self._users = UserRepo(session)
        self._sessions = SessionRepo(session)
        self._access = AccessRepo(session)

    async def _enforce_access_policy(self, email: str, email_verified: bool) -> None:
        config = await self._access.get_config()
        if not email_verified and not config.allow_unverified_emails:
            raise AccessDeniedError("Your Firebase email is not verified.")
        if not config.require_email_allowlist:
            return
        if not await self._access.is_email_authorized(email):
            raise AccessDeniedError()

    async def register(
        self,
        id_token: str,
        *,
        forwarded_for: str | None = None,
        user_agent: str | None = None,
    ) -> RegisteredSession:
        decoded = await self._verifier.verify(id_token)
        uid, email, email_verified = _identity(decoded)
        name = decoded.get("name") or DEFAULT_NAME
        avatar_url = decoded.get("picture") or None
        exp = decoded.get("exp")
        expires_at = (
            datetime.fromtimestamp(int(exp), tz=UTC).replace(tzinfo=None)
            if exp
            else utcnow() + DEFAULT_SESSION_TTL
        )
        ip = (forwarded_for or "").split(",")[0].strip() or None
        provider = (decoded.get("firebase") or {}).get("sign_in_provider") or DEFAULT_PROVIDER

        try:
            await self._enforce_access_policy(email, email_verified)
        except AccessDeniedError:
            # The singleton config row may have just been created; keep it.
            await self._session.commit()
            raise

        await self._users.upsert(user_id=uid, email=email, name=name, avatar_url=avatar_url)
        await self._sessions.upsert(
            token=id_token,
            user_id=uid,
            expires_at=expires_at,
            ip=ip,
            user_agent=user_agent,
            provider=provider,
        )
        await self._session.commit()
        log.info("session_registered", uid=uid, provider=provider)
        return RegisteredSession(
            uid=uid, email=email, name=name, avatar_url=avatar_url, expires_at=expires_at
        )

    async def revoke(self, id_token: str) -> None:
        revoked = await self._sessions.revoke(id_token)
        await self._session.commit()
        log.info("session_revoked", revoked=revoked)

    async def validate(self, id_token: str, *, min_role: Role | None = None) -> ValidatedSession:
        decoded = await self._verifier.verify(id_token)
        uid, email, email_verified = _identity(decoded)

        try:
            await self._enforce_access_policy(email, email_verified)
        except AccessDeniedError:
            # Access was withdrawn after sign-in: kill the session before rejecting.
            await self.revoke(id_token)
            raise

        row = await self._sessions.find_live(token=id_token, user_id=uid)
        if row is None:
            raise InvalidSessionError("The session is not registered or has expired.")

        user = row.user
        validated = ValidatedSession(
            uid=uid,
            email=email,
            name=user.name or DEFAULT_NAME,
            avatar_url=user.avatar_url or "",
            role=user.role,
        )
        if min_role is not None and not has_min_role(validated.role, min_role):
            raise InsufficientRoleError()
        return validated


# --- Module Notes -----------------------------------------------------------
# Both the gate middleware and the per-route dependencies call `validate`; the
# registry is the only source of truth for revocation.
