"""
ORM models for the purchase order domain.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .procurement import (  # noqa: F401
    PurchaseOrder,
    PurchaseOrderLine,
    Supplier,
    UnitOfMeasurement,
)
