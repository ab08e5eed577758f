from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntegerPkMixin, TimestampMixin, utcnow

# Amounts are handled as floats end to end; the database keeps fixed precision.
Money = Numeric(18, 2, asdecimal=False)
Quantity = Numeric(18, 4, asdecimal=False)
UnitPrice = Numeric(18, 4, asdecimal=False)
Percent = Numeric(7, 3, asdecimal=False)


class Supplier(IntegerPkMixin, TimestampMixin, Base):
    """Supplier master (maintained by the supplier upsert collaborator)."""
    __tablename__ = "suppliers"

    supplier_code: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    supplier_name: Mapped[str] = mapped_column(Text, nullable=False)


class PurchaseOrder(IntegerPkMixin, TimestampMixin, Base):
    """
    One saved version of a purchase order header.

    Rows are append-only per po_number; the highest id is the current version.
    """
    __tablename__ = "purchase_orders"

    po_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    order_book: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    order_sheet_no: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True
    )
    supplier_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    cost_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_code_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_type: Mapped[str] = mapped_column(Text, nullable=False, default="standard")
    subtotal: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    # Legacy column that not every deployment has. Deferred so plain loads never
    # select it; repositories undefer it when the HeaderSchema enables it.
    exclusive_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True, deferred=True)
    vat_percent: Mapped[Optional[float]] = mapped_column(Percent, nullable=True)
    vat_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    misc1_label: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    misc1_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    misc2_label: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    misc2_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_filename: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PurchaseOrderLine(IntegerPkMixin, Base):
    """Purchase order line item, owned by exactly one header version."""
    __tablename__ = "purchase_order_lines"

    purchase_order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    po_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    line_type: Mapped[str] = mapped_column(Text, nullable=False, default="standard")
    is_vatable: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    item_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[Optional[float]] = mapped_column(Quantity, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit_price: Mapped[Optional[float]] = mapped_column(UnitPrice, nullable=True)
    discount_percent: Mapped[Optional[float]] = mapped_column(Percent, nullable=True)
    net_price: Mapped[Optional[float]] = mapped_column(Money, nullable=True)

    line_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    deposit_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    ex_vat_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    line_vat_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)
    line_total_amount: Mapped[Optional[float]] = mapped_column(Money, nullable=True)


class UnitOfMeasurement(IntegerPkMixin, Base):
    """Catalogue of unit labels seen on standard lines; suggestion index only."""
    __tablename__ = "units_of_measurement"

    unit_label: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
