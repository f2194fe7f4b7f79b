"""
portfolio_ops

Top-level package for the portfolio site and operations dashboard service.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file free of imports; settings and app wiring live in submodules.
