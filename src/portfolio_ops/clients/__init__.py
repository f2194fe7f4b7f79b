"""
portfolio_ops.clients

Outbound HTTP client package.

Responsibilities:
- Provide client interfaces for external automation services (n8n webhooks).
"""
