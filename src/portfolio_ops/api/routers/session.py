"""
portfolio_ops.api.routers.session

Session endpoints.

Responsibilities:
- Exchange a Firebase ID token for a registered session and an HttpOnly cookie.
- Revoke the session and clear the cookie.
- Report the current session, optionally checking a minimum role.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
)

from portfolio_ops.api.deps import settings_dep
from portfolio_ops.api.errors import NO_STORE
from portfolio_ops.auth.deps import request_token, session_service, validate_or_raise
from portfolio_ops.auth.errors import (
    AccessDeniedError,
    FirebaseConfigurationError,
    InvalidSessionError,
)
from portfolio_ops.auth.roles import parse_role
from portfolio_ops.auth.session import SessionService
from portfolio_ops.settings import Settings

router = APIRouter(tags=["session"])


class SessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: str | None = Field(default=None, alias="idToken")


def _no_store(response: Response) -> None:
    response.headers.update(NO_STORE)


@router.post("/api/auth/firebase-session")
async def create_session(
    request: Request,
    response: Response,
    body: SessionRequest,
    svc: SessionService = Depends(session_service),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    _no_store(response)
    id_token = (body.id_token or "").strip()
    if not id_token:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Missing idToken.")

    try:
        registered = await svc.register(
            id_token,
            forwarded_for=request.headers.get("x-forwarded-for"),
            user_agent=request.headers.get("user-agent"),
        )
    except AccessDeniedError as e:
        raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail=str(e)) from e
    except (InvalidSessionError, FirebaseConfigurationError) as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=str(e)) from e

    response.set_cookie(
        key=settings.session_cookie_name,
        value=id_token,
        max_age=settings.session_cookie_max_age,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.env == "prod",
    )
    return {
        "ok": True,
        "user": {
            "uid": registered.uid,
            "email": registered.email,
            "name": registered.name,
            "avatarUrl": registered.avatar_url,
        },
    }


@router.delete("/api/auth/firebase-session")
async def delete_session(
    response: Response,
    token: str | None = Depends(request_token),
    svc: SessionService = Depends(session_service),
    settings: Settings = Depends(settings_dep),
) -> dict[str, Any]:
    _no_store(response)
    if not token:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Missing session token.")

    await svc.revoke(token)
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.env == "prod",
    )
    return {"ok": True}


@router.get("/api/secure/session")
async def current_session(
    response: Response,
    min_role: str | None = Query(default=None, alias="minRole"),
    token: str | None = Depends(request_token),
    svc: SessionService = Depends(session_service),
) -> dict[str, Any]:
    _no_store(response)
    # Unknown role names are ignored rather than rejected.
    validated = await validate_or_raise(svc, token, parse_role(min_role))
    return {"ok": True, "session": validated.as_dict()}
