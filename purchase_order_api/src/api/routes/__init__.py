"""
API route modules.

This package contains subrouters for:
- Procurement: header edits, line replacement, the PO view and version history
- External: API-key authenticated header inserts

Routers are included from src.api.main (under the /api/v1 prefix).
"""
