"""
portfolio_ops.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Turn the request's bearer header or session cookie into a `ValidatedSession`.
- Enforce the minimum role via a reusable dependency factory.
- Reuse the session the gate already validated for this request.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from portfolio_ops.api.deps import db_session, settings_dep, token_verifier_dep
from portfolio_ops.auth.errors import (
    AccessDeniedError,
    FirebaseConfigurationError,
    InsufficientRoleError,
    InvalidSessionError,
)
from portfolio_ops.auth.firebase import TokenVerifier
from portfolio_ops.auth.models import ValidatedSession
from portfolio_ops.auth.roles import has_min_role
from portfolio_ops.auth.session import SessionService, extract_token
from portfolio_ops.db.models import Role
from portfolio_ops.settings import Settings


def session_service(
    session: AsyncSession = Depends(db_session),
    verifier: TokenVerifier = Depends(token_verifier_dep),
) -> SessionService:
    return SessionService(session=session, verifier=verifier)


def request_token(request: Request, settings: Settings = Depends(settings_dep)) -> str | None:
    return extract_token(
        authorization=request.headers.get("authorization"),
        cookie_header=request.headers.get("cookie"),
        cookie_name=settings.session_cookie_name,
    )


async def validate_or_raise(
    svc: SessionService, token: str | None, min_role: Role | None
) -> ValidatedSession:
    if not token:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing session token.")
    try:
        return await svc.validate(token, min_role=min_role)
    except (AccessDeniedError, InsufficientRoleError) as e:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail=str(e)) from e
    except (InvalidSessionError, FirebaseConfigurationError) as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=str(e)) from e


def require_session(min_role: Role | None = None):
    async def _dep(
        request: Request,
        token: str | None = Depends(request_token),
        svc: SessionService = Depends(session_service),
    ) -> ValidatedSession:
        gated: ValidatedSession | None = getattr(request.state, "validated_session", None)
        if gated is not None and (min_role is None or has_min_role(gated.role, min_role)):
            return gated
        return await validate_or_raise(svc, token, min_role)

    return _dep


# Every dashboard API works on the caller's own objects and needs collaborator rights.
require_collaborator = require_session(Role.collaborator)


# --- Module Notes -----------------------------------------------------------
# `auth.gate` applies the same validation to page routes before routing happens.
