"""
Typed errors raised by the purchase order engine.

Each error carries a machine-readable ``code`` and the HTTP ``status_code`` the
API layer renders it with, so routes never translate messages by hand:

    ProcurementError
    +-- ValidationError     400  malformed or missing input, never retried
    +-- AuthorizationError  403  bad or missing API key
    +-- NotFoundError       404  unknown purchase order / version id
    +-- ConflictError       409  edit attempted against a non-latest version
    +-- PersistenceError    500  database failure, transaction rolled back
"""

from __future__ import annotations

from typing import Any, Optional


class ProcurementError(Exception):
    """Base class for all errors surfaced by the purchase order engine."""

    code: str = "procurement_error"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ProcurementError):
    code = "validation_error"
    status_code = 400


class AuthorizationError(ProcurementError):
    code = "forbidden"
    status_code = 403


class NotFoundError(ProcurementError):
    code = "not_found"
    status_code = 404


class ConflictError(ProcurementError):
    """Raised when a caller edits a version that is no longer the latest."""

    code = "version_conflict"
    status_code = 409

    def __init__(self, version_id: int, latest_id: Optional[int], po_number: str) -> None:
        super().__init__(
            "Only the latest version of a purchase order can be edited. "
            "Reload the purchase order and try again.",
            details={
                "purchase_order_id": version_id,
                "latest_purchase_order_id": latest_id,
                "po_number": po_number,
            },
        )
        self.version_id = version_id
        self.latest_id = latest_id
        self.po_number = po_number


class PersistenceError(ProcurementError):
    code = "persistence_error"
    status_code = 500
