from __future__ import annotations

from datetime import date

import httpx
import pytest
from fastapi import FastAPI

from conftest import sign_in
from portfolio_ops.billing.google_cloud import (
    NO_ROWS_WARNING,
    BillingConfigurationError,
    aggregate_usage,
    build_usage_query,
    date_range,
    map_usage_rows,
    parse_billing_period,
    parse_export_table,
)
from portfolio_ops.db.models import Role

ROWS = [
    {
        "usage_date": date(2026, 10, 2),
        "service_description": "Cloud Firestore",
        "sku_description": "Read ops",
        "usage_unit": "requests",
        "usage_amount": 1000,
        "net_cost": 0.5,
        "currency": "EUR",
    },
    {
        "usage_date": date(2026, 10, 1),
        "service_description": "Cloud Firestore",
        "sku_description": "Read ops",
        "usage_unit": "requests",
        "usage_amount": 3000,
        "net_cost": 1.5,
        "currency": "EUR",
    },
    {
        "usage_date": date(2026, 10, 1),
        "service_description": "Cloud Storage",
        "sku_description": "Standard storage",
        "usage_unit": "gibibyte month",
        "usage_amount": 2,
        "net_cost": 2.25,
        "currency": "EUR",
    },
    # Incomplete rows are dropped.
    {"usage_date": None, "service_description": "x", "sku_description": "y"},
]


def test_parse_export_table() -> None:
    assert parse_export_table("`proj.billing.export_v1`") == "proj.billing.export_v1"
    with pytest.raises(BillingConfigurationError):
        parse_export_table("proj.billing")
    with pytest.raises(BillingConfigurationError):
        parse_export_table("proj..export")


def test_period_and_date_range() -> None:
    assert parse_billing_period("7d") == "7d"
    assert parse_billing_period("1y") == "30d"
    assert parse_billing_period(None) == "30d"
    assert date_range("7d", today=date(2026, 10, 18)) == (date(2026, 10, 12), date(2026, 10, 18))


def test_query_is_parameterized() -> None:
    query = build_usage_query(export_table="proj.billing.export", service="gemini")
    assert "FROM `proj.billing.export`" in query
    assert "@startDate AND @endDate" in query
    assert "gemini" in query


def test_aggregate_usage() -> None:
    records = map_usage_rows(ROWS)
    assert len(records) == 3

    usage = aggregate_usage(
        records, service="firebase", period="7d", start=date(2026, 9, 26), end=date(2026, 10, 2)
    )
    assert usage.currency == "EUR"
    assert usage.total_cost == 4.25
    assert [(d.date, d.cost) for d in usage.daily] == [("2026-10-01", 3.75), ("2026-10-02", 0.5)]
    assert [(s.sku_name, s.cost, s.usage_amount) for s in usage.sku_breakdown] == [
        ("Standard storage", 2.25, 2.0),
        ("Read ops", 2.0, 4000.0),
    ]
    assert [(u.unit, u.amount) for u in usage.usage_totals] == [
        ("requests", 4000.0),
        ("gibibyte month", 2.0),
    ]
    assert usage.warning is None


def test_aggregate_without_rows_warns() -> None:
    usage = aggregate_usage(
        [], service="gemini", period="30d", start=date(2026, 9, 19), end=date(2026, 10, 18)
    )
    assert usage.currency == "USD"
    assert usage.total_cost == 0
    assert usage.warning == NO_ROWS_WARNING


@pytest.mark.asyncio
async def test_usage_endpoint(
    app: FastAPI, client: httpx.AsyncClient, auth_headers: dict[str, str]
) -> None:
    app.state.settings.billing_export_table = "proj.billing.export"
    app.state.settings.billing_query_project_id = "proj"
    app.state.billing_runner.rows = ROWS

    r = await client.get(
        "/api/billing/usage", params={"service": "firebase", "period": "7d"}, headers=auth_headers
    )
    assert r.status_code == 200
    assert r.headers["cache-control"] == "no-store"
    data = r.json()["data"]
    assert data["service"] == "firebase"
    assert data["totalCost"] == 4.25
    assert data["skuBreakdown"][0]["skuName"] == "Standard storage"
    assert data["usageTotals"][0] == {"unit": "requests", "amount": 4000.0}
    assert data["generatedAt"].endswith("Z")

    config, query, start, end = app.state.billing_runner.calls[0]
    assert config.query_project_id == "proj"
    assert "FROM `proj.billing.export`" in query
    assert (end - start).days == 6


@pytest.mark.asyncio
async def test_usage_endpoint_errors(
    app: FastAPI, client: httpx.AsyncClient, auth_headers: dict[str, str]
) -> None:
    r = await client.get("/api/billing/usage", params={"service": "aws"}, headers=auth_headers)
    assert r.status_code == 400

    # No export table configured.
    r = await client.get("/api/billing/usage", params={"service": "gemini"}, headers=auth_headers)
    assert r.status_code == 400
    assert "GOOGLE_BILLING_EXPORT_TABLE" in r.json()["detail"]

    app.state.settings.billing_export_table = "proj.billing.export"
    r = await client.get("/api/billing/usage", params={"service": "gemini"}, headers=auth_headers)
    assert r.status_code == 400
    assert "GOOGLE_BILLING_QUERY_PROJECT_ID" in r.json()["detail"]


@pytest.mark.asyncio
async def test_usage_requires_collaborator(app: FastAPI, client: httpx.AsyncClient) -> None:
    headers = await sign_in(app, client, role=Role.reader)
    r = await client.get("/api/billing/usage", params={"service": "firebase"}, headers=headers)
    assert r.status_code == 403
