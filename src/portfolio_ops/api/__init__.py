"""
portfolio_ops.api

API package for the portfolio/ops service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring and domain error translation.
"""
