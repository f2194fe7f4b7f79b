"""
portfolio_ops.api.routers.pages

Dashboard page view models.

Responsibilities:
- Summarize the signed-in session and the dashboard navigation.
- Resolve an optimized image slug into its detail view.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response

from portfolio_ops.api.deps import image_service
from portfolio_ops.api.errors import NO_STORE, domain_errors
from portfolio_ops.auth.deps import require_collaborator
from portfolio_ops.auth.models import ValidatedSession
from portfolio_ops.images.service import ImageService

router = APIRouter(prefix="/dashboard", tags=["pages"])

NAVIGATION: list[dict[str, str]] = [
    {"title": "Overview", "href": "/dashboard"},
    {"title": "Image optimizer", "href": "/dashboard/images/optimize"},
    {"title": "n8n copies", "href": "/dashboard/images/copies"},
    {"title": "Firebase billing", "href": "/dashboard/billing/firebase"},
    {"title": "Gemini billing", "href": "/dashboard/billing/gemini"},
]


@router.get("")
async def dashboard(
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    return {"session": principal.as_dict(), "navigation": NAVIGATION}


@router.get("/images/optimize/{slug}")
async def optimized_image_page(
    slug: str,
    response: Response,
    principal: ValidatedSession = Depends(require_collaborator),
    svc: ImageService = Depends(image_service),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    with domain_errors():
        detail = await svc.detail(principal.uid, slug)
    return {"session": principal.as_dict(), "navigation": NAVIGATION, **detail}
