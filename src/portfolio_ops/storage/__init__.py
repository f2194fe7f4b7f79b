"""
portfolio_ops.storage

Object storage boundary (Firebase Storage / Google Cloud Storage).

Responsibilities:
- Async facade over the storage bucket.
- Per-user path layout, naming rules and download URLs.
"""
