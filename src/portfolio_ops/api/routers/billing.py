"""
portfolio_ops.api.routers.billing

Billing usage endpoint.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response
from starlette.status import HTTP_400_BAD_REQUEST

from portfolio_ops.api.deps import billing_runner_dep, settings_dep
from portfolio_ops.api.errors import NO_STORE, domain_errors
from portfolio_ops.auth.deps import require_collaborator
from portfolio_ops.billing.google_cloud import (
    BillingQueryRunner,
    get_billing_usage,
    parse_billing_period,
)
from portfolio_ops.settings import Settings

router = APIRouter(prefix="/api/billing", tags=["billing"])

SERVICES = ("firebase", "gemini")


@router.get("/usage", dependencies=[Depends(require_collaborator)])
async def billing_usage(
    response: Response,
    service: str | None = None,
    period: str | None = None,
    settings: Settings = Depends(settings_dep),
    runner: BillingQueryRunner = Depends(billing_runner_dep),
) -> dict[str, Any]:
    response.headers.update(NO_STORE)
    if service not in SERVICES:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST,
            detail="Invalid service parameter. Use service=firebase or service=gemini.",
        )

    with domain_errors():
        usage = await get_billing_usage(
            settings, runner, service=service, period=parse_billing_period(period)
        )
    return {"ok": True, "data": usage.model_dump(by_alias=True)}
