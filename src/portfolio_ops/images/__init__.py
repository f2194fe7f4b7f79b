"""
portfolio_ops.images

Image tooling package.

Responsibilities:
- Format labels, slugs and capability checks.
- Pillow encode/convert wrappers.
- Lineage reconstruction over relation records.
- The image service behind the dashboard image endpoints.
"""
