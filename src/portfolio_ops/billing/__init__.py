"""
portfolio_ops.billing

Cloud Billing usage viewer.

Responsibilities:
- Resolve the Cloud Billing BigQuery export configuration.
- Query daily net cost per service/SKU and aggregate it into a usage report.
"""
