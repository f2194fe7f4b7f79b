"""
portfolio_ops.api.errors

Translation of domain exceptions into HTTP errors.

Responsibilities:
- Map image, relay, billing and managed-service failures to `HTTPException`.
- Unreachable webhooks count as managed-service failures (500 with the message).
- Keep error bodies in FastAPI's `{"detail": ...}` shape.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException
from google.api_core.exceptions import GoogleAPIError
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from portfolio_ops.auth.errors import FirebaseConfigurationError
from portfolio_ops.billing.google_cloud import BillingConfigurationError
from portfolio_ops.clients.n8n import N8nRelayError, N8nUnavailableError
from portfolio_ops.images.errors import ImageRequestError
from portfolio_ops.observability.logging import get_logger

log = get_logger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


@contextmanager
def domain_errors() -> Iterator[None]:
    try:
        yield
    except ImageRequestError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message, headers=NO_STORE) from e
    except N8nRelayError as e:
        log.warning("n8n_relay_failed", status=e.status)
        raise HTTPException(
            status_code=HTTP_502_BAD_GATEWAY,
            detail={
                "message": "n8n responded with an error.",
                "status": e.status,
                "payload": e.payload,
            },
            headers=NO_STORE,
        ) from e
    except BillingConfigurationError as e:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST, detail=str(e), headers=NO_STORE
        ) from e
    except (FirebaseConfigurationError, GoogleAPIError) as e:
        log.error("managed_service_failed", error=str(e))
        raise HTTPException(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e), headers=NO_STORE
        ) from e
    except N8nUnavailableError as e:
        log.error("n8n_relay_failed", error=str(e))
        raise HTTPException(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e), headers=NO_STORE
        ) from e
