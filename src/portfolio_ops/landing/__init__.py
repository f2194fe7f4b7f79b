"""
portfolio_ops.landing

Public landing page data.

Responsibilities:
- Static profile, services and stack content.
- GitHub activity widgets (pinned repositories, contributions, streaks, pushes).
"""
