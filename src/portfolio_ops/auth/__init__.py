"""
portfolio_ops.auth

Authentication/authorization package.

Responsibilities:
- Firebase Admin boundary (ID token verification).
- Session registry backed by the database.
- Role gate: route rules, FastAPI dependencies and the request middleware.
"""
