"""
portfolio_ops.billing.google_cloud

Cloud Billing export queries against BigQuery.

Responsibilities:
- Validate the export table / query project configuration.
- Build the parameterized usage query for a service and date range.
- Run it through google-cloud-bigquery off the event loop.
- Aggregate raw rows into daily totals, SKU breakdown and usage per unit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from google.cloud import bigquery
from google.oauth2 import service_account
from starlette.concurrency import run_in_threadpool

from portfolio_ops.billing.models import (
    BillingPeriod,
    BillingService,
    BillingUsage,
    DailyCost,
    SkuBreakdownItem,
    UsageTotal,
)
from portfolio_ops.observability.logging import get_logger
from portfolio_ops.settings import Settings

log = get_logger(__name__)

PERIOD_DAYS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_PERIOD: BillingPeriod = "30d"
SKU_BREAKDOWN_LIMIT = 20

SERVICE_FILTER_SQL: dict[str, str] = {
    "firebase": (
        "REGEXP_CONTAINS(LOWER(CONCAT(service.description, ' ', sku.description)), "
        "r'(firebase|firestore|realtime database|cloud functions|cloud storage|"
        "app hosting|firebase hosting)')"
    ),
    "gemini": (
        "REGEXP_CONTAINS(LOWER(CONCAT(service.description, ' ', sku.description)), "
        "r'(gemini|generative language|vertex ai)')"
    ),
}

NO_ROWS_WARNING = (
    "No costs were found for this service in the selected period. "
    "Check the filters and the billing export."
)


class BillingConfigurationError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class BillingConfig:
    query_project_id: str
    export_table: str
    location: str | None = None


@dataclass(frozen=True, slots=True)
class UsageRecord:
    usage_date: str
    service_name: str
    sku_name: str
    usage_unit: str | None
    usage_amount: float
    net_cost: float
    currency: str | None


def parse_export_table(raw: str) -> str:
    parts = raw.replace("`", "").split(".")
    if len(parts) != 3:
        raise BillingConfigurationError(
            "GOOGLE_BILLING_EXPORT_TABLE must look like project.dataset.table "
            "(for example my-project.billing.gcp_billing_export_v1_*)."
        )
    if not all(part.strip() for part in parts):
        raise BillingConfigurationError("GOOGLE_BILLING_EXPORT_TABLE is not valid.")
    return ".".join(part.strip() for part in parts)


def billing_config(settings: Settings) -> BillingConfig:
    if not settings.billing_export_table:
        raise BillingConfigurationError(
            "GOOGLE_BILLING_EXPORT_TABLE is missing. Enable the Cloud Billing export to "
            "BigQuery and set this variable."
        )
    table = parse_export_table(settings.billing_export_table)

    project_id = settings.billing_query_project_id or settings.firebase_project_id
    if not project_id:
        raise BillingConfigurationError(
            "GOOGLE_BILLING_QUERY_PROJECT_ID (or FIREBASE_PROJECT_ID) is required to run "
            "billing queries in BigQuery."
        )
    return BillingConfig(
        query_project_id=project_id, export_table=table, location=settings.billing_location
    )


def parse_billing_period(value: str | None) -> BillingPeriod:
    if value in PERIOD_DAYS:
        return value  # type: ignore[return-value]
    return DEFAULT_PERIOD


def date_range(period: BillingPeriod, *, today: date | None = None) -> tuple[date, date]:
    end = today or datetime.now(UTC).date()
    return end - timedelta(days=PERIOD_DAYS[period] - 1), end


def build_usage_query(*, export_table: str, service: BillingService) -> str:
    return f"""
        SELECT
            DATE(usage_end_time) AS usage_date,
            service.description AS service_description,
            sku.description AS sku_description,
            usage.unit AS usage_unit,
            SUM(IFNULL(usage.amount, 0)) AS usage_amount,
            SUM(cost + IFNULL((SELECT SUM(c.amount) FROM UNNEST(credits) c), 0)) AS net_cost,
            ANY_VALUE(currency) AS currency
        FROM `{export_table}`
        WHERE DATE(usage_end_time) BETWEEN @startDate AND @endDate
          AND {SERVICE_FILTER_SQL[service]}
        GROUP BY usage_date, service_description, sku_description, usage_unit
        ORDER BY usage_date ASC, net_cost DESC
    """


def _number(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _text(value: Any) -> str | None:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, date) else str(value)


def map_usage_rows(rows: Iterable[Mapping[str, Any]]) -> list[UsageRecord]:
    records: list[UsageRecord] = []
    for row in rows:
        usage_date = _text(row.get("usage_date"))
        service_name = _text(row.get("service_description"))
        sku_name = _text(row.get("sku_description"))
        if not usage_date or not service_name or not sku_name:
            continue
        records.append(
            UsageRecord(
                usage_date=usage_date,
                service_name=service_name,
                sku_name=sku_name,
                usage_unit=_text(row.get("usage_unit")),
                usage_amount=_number(row.get("usage_amount")),
                net_cost=_number(row.get("net_cost")),
                currency=_text(row.get("currency")),
            )
        )
    return records


def aggregate_usage(
    records: list[UsageRecord],
    *,
    service: BillingService,
    period: BillingPeriod,
    start: date,
    end: date,
) -> BillingUsage:
    daily: dict[str, float] = {}
    skus: dict[tuple[str, str, str], SkuBreakdownItem] = {}
    by_unit: dict[str, float] = {}
    currency: str | None = None
    total = 0.0

    for r in records:
        daily[r.usage_date] = daily.get(r.usage_date, 0.0) + r.net_cost

        key = (r.service_name, r.sku_name, r.usage_unit or "-")
        item = skus.get(key)
        if item is None:
            skus[key] = SkuBreakdownItem(
                service_name=r.service_name,
                sku_name=r.sku_name,
                usage_unit=r.usage_unit,
                usage_amount=r.usage_amount,
                cost=r.net_cost,
            )
        else:
            item.usage_amount += r.usage_amount
            item.cost += r.net_cost

        if r.usage_unit:
            by_unit[r.usage_unit] = by_unit.get(r.usage_unit, 0.0) + r.usage_amount

        total += r.net_cost
        currency = currency or r.currency

    days = PERIOD_DAYS[period]
    return BillingUsage(
        service=service,
        period=period,
        currency=currency or "USD",
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        total_cost=total,
        average_daily_cost=total / days if days > 0 else 0.0,
        daily=[DailyCost(date=d, cost=c) for d, c in sorted(daily.items())],
        sku_breakdown=sorted(skus.values(), key=lambda i: i.cost, reverse=True)[
            :SKU_BREAKDOWN_LIMIT
        ],
        usage_totals=[
            UsageTotal(unit=u, amount=a)
            for u, a in sorted(by_unit.items(), key=lambda kv: kv[1], reverse=True)
        ],
        generated_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        warning=NO_ROWS_WARNING if not daily else None,
    )


class BillingQueryRunner:
    """Runs usage queries with the Firebase service account (or ADC when absent)."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def _client(self, config: BillingConfig) -> bigquery.Client:
        s = self._settings
        if s.firebase_client_email and s.firebase_private_key:
            credentials = service_account.Credentials.from_service_account_info(
                {
                    "type": "service_account",
                    "project_id": s.firebase_project_id or config.query_project_id,
                    "client_email": s.firebase_client_email,
                    "private_key": s.firebase_private_key,
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
            return bigquery.Client(credentials=credentials, project=config.query_project_id)
        return bigquery.Client(project=config.query_project_id)

    def _run_sync(
        self, config: BillingConfig, query: str, start: date, end: date
    ) -> list[dict[str, Any]]:
        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("startDate", "DATE", start),
                bigquery.ScalarQueryParameter("endDate", "DATE", end),
            ]
        )
        client = self._client(config)
        try:
            job = client.query(query, job_config=job_config, location=config.location)
            return [dict(row.items()) for row in job.result()]
        finally:
            client.close()

    async def run(
        self, config: BillingConfig, query: str, start: date, end: date
    ) -> list[dict[str, Any]]:
        return await run_in_threadpool(self._run_sync, config, query, start, end)


async def get_billing_usage(
    settings: Settings,
    runner: BillingQueryRunner,
    *,
    service: BillingService,
    period: BillingPeriod,
) -> BillingUsage:
    config = billing_config(settings)
    start, end = date_range(period)
    query = build_usage_query(export_table=config.export_table, service=service)
    rows = await runner.run(config, query, start, end)
    usage = aggregate_usage(
        map_usage_rows(rows), service=service, period=period, start=start, end=end
    )
    log.info(
        "billing_query",
        service=service,
        period=period,
        rows=len(rows),
        total_cost=usage.total_cost,
    )
    return usage


# --- Module Notes -----------------------------------------------------------
# The runner is the only piece that talks to BigQuery; tests replace it on app.state.
