"""
portfolio_ops.auth.firebase

Firebase Admin boundary.

Responsibilities:
- Initialize (or reuse) the default firebase-admin app from settings, once per process.
- Verify Firebase ID tokens off the event loop.
- Hand out the default Storage bucket.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, storage
from firebase_admin.exceptions import FirebaseError
from starlette.concurrency import run_in_threadpool

from portfolio_ops.auth.errors import FirebaseConfigurationError, InvalidSessionError
from portfolio_ops.observability.logging import get_logger
from portfolio_ops.settings import Settings

log = get_logger(__name__)


class TokenVerifier(Protocol):
    async def verify(self, id_token: str) -> dict[str, Any]: ...


_init_lock = threading.Lock()


def _default_app() -> firebase_admin.App | None:
    try:
        return firebase_admin.get_app()
    except ValueError:
        return None


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    app = _default_app()
    if app is not None:
        return app

    missing = [
        name
        for name, value in (
            ("FIREBASE_PROJECT_ID", settings.firebase_project_id),
            ("FIREBASE_CLIENT_EMAIL", settings.firebase_client_email),
            ("FIREBASE_PRIVATE_KEY", settings.firebase_private_key),
        )
        if not value
    ]
    if missing:
        raise FirebaseConfigurationError(
            f"Missing Firebase Admin variables: {', '.join(missing)}."
        )

    with _init_lock:
        # Another threadpool worker may have initialized while we waited.
        app = _default_app()
        if app is not None:
            return app
        cred = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                "private_key": settings.firebase_private_key,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        options: dict[str, Any] = {"projectId": settings.firebase_project_id}
        if settings.firebase_storage_bucket:
            options["storageBucket"] = settings.firebase_storage_bucket

        app = firebase_admin.initialize_app(cred, options)
    log.info("firebase_initialized", project_id=settings.firebase_project_id)
    return app


class FirebaseTokenVerifier:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _verify_sync(self, id_token: str) -> dict[str, Any]:
        app = get_firebase_app(self._settings)
        return firebase_auth.verify_id_token(id_token, app=app)

    async def verify(self, id_token: str) -> dict[str, Any]:
        try:
            # verify_id_token may fetch Google's public certs over the network.
            return await run_in_threadpool(self._verify_sync, id_token)
        except (ValueError, FirebaseError) as e:
            raise InvalidSessionError(f"Invalid session token: {e}") from e


def get_storage_bucket(settings: Settings):
    app = get_firebase_app(settings)
    return storage.bucket(app=app)


# --- Module Notes -----------------------------------------------------------
# Tests replace `app.state.token_verifier` and `app.state.bucket` with fakes; nothing
# else in the codebase imports firebase_admin.
