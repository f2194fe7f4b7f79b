from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

BillingService = Literal["firebase", "gemini"]
BillingPeriod = Literal["7d", "30d", "90d"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DailyCost(_CamelModel):
    date: str
    cost: float


class SkuBreakdownItem(_CamelModel):
    service_name: str
    sku_name: str
    usage_unit: str | None
    usage_amount: float
    cost: float


class UsageTotal(_CamelModel):
    unit: str
    amount: float


class BillingUsage(_CamelModel):
    service: BillingService
    period: BillingPeriod
    currency: str
    start_date: str
    end_date: str
    total_cost: float
    average_daily_cost: float
    daily: list[DailyCost]
    sku_breakdown: list[SkuBreakdownItem]
    usage_totals: list[UsageTotal]
    generated_at: str
    warning: str | None = None
