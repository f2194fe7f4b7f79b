"""
portfolio_ops.auth.gate

Session/role gate in front of every non-public route.

Responsibilities:
- Let public paths through untouched.
- Require a session token and validate it in-process against the registry.
- Apply the route-prefix minimum role table.
- Hand the validated session to route dependencies via `request.state`.
- Reject API calls with JSON 401/403 and page loads with a redirect home.
"""

from __future__ import annotations

from typing import Literal
from urllib.parse import urlencode

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from portfolio_ops.auth.errors import (
    AccessDeniedError,
    FirebaseConfigurationError,
    InsufficientRoleError,
    InvalidSessionError,
)
from portfolio_ops.auth.roles import is_public_path, min_role_for_path
from portfolio_ops.auth.session import SessionService, extract_token
from portfolio_ops.observability.logging import get_logger

log = get_logger(__name__)

AuthState = Literal["required", "forbidden"]

_MESSAGES: dict[AuthState, str] = {
    "required": "You must sign in to access this resource.",
    "forbidden": "You do not have enough permissions for this resource.",
}


def reject(request: Request, state: AuthState = "required") -> Response:
    path = request.url.path
    if path.startswith("/api/"):
        status = HTTP_403_FORBIDDEN if state == "forbidden" else HTTP_401_UNAUTHORIZED
        return JSONResponse({"detail": _MESSAGES[state], "auth": state}, status_code=status)

    params = {"auth": state}
    next_path = path + (f"?{request.url.query}" if request.url.query else "")
    if next_path and next_path != "/":
        params["next"] = next_path
    return RedirectResponse(url=f"/?{urlencode(params)}")


class SessionGateMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if is_public_path(path):
            return await call_next(request)

        settings = request.app.state.settings
        token = extract_token(
            authorization=request.headers.get("authorization"),
            cookie_header=request.headers.get("cookie"),
            cookie_name=settings.session_cookie_name,
        )
        if not token:
            return reject(request)

        min_role = min_role_for_path(path)
        async with request.app.state.sessionmaker() as session:
            svc = SessionService(session=session, verifier=request.app.state.token_verifier)
            try:
                validated = await svc.validate(token, min_role=min_role)
            except (InsufficientRoleError, AccessDeniedError) as e:
                log.info("gate_forbidden", reason=str(e), min_role=min_role)
                return reject(request, "forbidden")
            except (InvalidSessionError, FirebaseConfigurationError) as e:
                log.info("gate_rejected", reason=str(e))
                return reject(request)

        structlog.contextvars.bind_contextvars(uid=validated.uid)
        request.state.validated_session = validated
        return await call_next(request)


# --- Module Notes -----------------------------------------------------------
# API routes also enforce their own minimum role through `auth.deps`, which reuses the
# session validated here when its role suffices. The rule table only names page prefixes.
