from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Select, Update, delete, func, inspect, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from src.db.models.procurement import (
    PurchaseOrder,
    PurchaseOrderLine,
    Supplier,
    UnitOfMeasurement,
)
from src.domain.projection import HeaderSchema
from src.domain.purchase_orders import LineItem, OrderType, PurchaseOrderVersion
from .base import BaseRepository


class SupplierRepository(BaseRepository):
    """Read access to the supplier master."""

    async def get_by_code(self, supplier_code: str) -> Optional[Supplier]:
        stmt = select(Supplier).where(Supplier.supplier_code == supplier_code)
        return await self.scalar_one_or_none(stmt)


# PUBLIC_INTERFACE
def to_version(row: PurchaseOrder) -> PurchaseOrderVersion:
    """
    Domain snapshot of a header row.

    Only loaded attributes are read, so a deferred column the deployment does
    not have is never lazily selected; it comes back as None.
    """
    unloaded = inspect(row).unloaded
    return PurchaseOrderVersion.model_validate(
        {
            name: getattr(row, name)
            for name in PurchaseOrderVersion.model_fields
            if name not in unloaded
        }
    )


def _latest_ids():
    """Subquery of (po_number, latest_id) for every PO number."""
    return (
        select(
            PurchaseOrder.po_number.label("po_number"),
            func.max(PurchaseOrder.id).label("latest_id"),
        )
        .group_by(PurchaseOrder.po_number)
        .subquery()
    )


class PurchaseOrderRepository(BaseRepository):
    """
    Repository for purchase order header versions and their lines.

    Header reads and inserts follow the deployment's HeaderSchema: optional
    columns it does not enable are neither selected nor written.
    """

    def __init__(self, session: AsyncSession, header_schema: Optional[HeaderSchema] = None) -> None:
        super().__init__(session)
        self.header_schema = header_schema or HeaderSchema.from_optional_columns(())

    def _select_headers(self) -> Select:
        columns = sorted(self.header_schema.enabled_optional_columns)
        return select(PurchaseOrder).options(
            *(undefer(getattr(PurchaseOrder, column)) for column in columns)
        )

    async def get_version(self, version_id: int, *, refresh: bool = False) -> Optional[PurchaseOrder]:
        stmt = self._select_headers().where(PurchaseOrder.id == version_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return await self.scalar_one_or_none(stmt)

    async def resolve_latest(self, po_number: str) -> Optional[int]:
        """Highest version id for the PO number, or None when it has no versions."""
        stmt = select(func.max(PurchaseOrder.id)).where(PurchaseOrder.po_number == po_number)
        return await self.scalar_one_or_none(stmt)

    async def get_latest(
        self, po_number: str, *, order_book: Optional[str] = None
    ) -> Optional[PurchaseOrder]:
        latest = _latest_ids()
        stmt = (
            self._select_headers()
            .join(
                latest,
                (latest.c.po_number == PurchaseOrder.po_number)
                & (latest.c.latest_id == PurchaseOrder.id),
            )
            .where(PurchaseOrder.po_number == po_number)
        )
        if order_book:
            stmt = stmt.where(PurchaseOrder.order_book == order_book)
        return await self.scalar_one_or_none(stmt.limit(1))

    async def list_latest_po_numbers(self, *, order_book: Optional[str] = None) -> List[str]:
        """PO numbers of current versions, ascending, optionally within one order book."""
        latest = _latest_ids()
        stmt = select(PurchaseOrder.po_number).join(
            latest,
            (latest.c.po_number == PurchaseOrder.po_number)
            & (latest.c.latest_id == PurchaseOrder.id),
        )
        if order_book:
            stmt = stmt.where(PurchaseOrder.order_book == order_book)
        stmt = stmt.order_by(PurchaseOrder.po_number.asc())
        return list(await self.scalars(stmt))

    async def list_versions(self, po_number: str) -> List[PurchaseOrder]:
        stmt = (
            self._select_headers()
            .where(PurchaseOrder.po_number == po_number)
            .order_by(PurchaseOrder.id.desc())
        )
        return list(await self.scalars(stmt))

    async def list_lines(self, version_id: int) -> List[PurchaseOrderLine]:
        stmt = (
            select(PurchaseOrderLine)
            .where(PurchaseOrderLine.purchase_order_id == version_id)
            .order_by(PurchaseOrderLine.line_no.asc(), PurchaseOrderLine.id.asc())
        )
        return list(await self.scalars(stmt))

    async def insert_version(self, version: PurchaseOrderVersion) -> PurchaseOrder:
        """Insert a header version and flush so its id is assigned."""
        row = PurchaseOrder(
            **version.column_values(omit=self.header_schema.disabled_optional_columns)
        )
        await self.add(row)
        await self.flush()
        return row

    async def apply_update(self, statement: Update) -> None:
        await self.execute(statement)

    async def delete_lines(self, version_id: int) -> None:
        await self.execute(
            delete(PurchaseOrderLine).where(PurchaseOrderLine.purchase_order_id == version_id)
        )

    async def insert_lines(self, owner: PurchaseOrderVersion, lines: Iterable[LineItem]) -> int:
        """
        Attach lines to ``owner``. Snapshot columns (po number, supplier, line
        type) always come from the owning version, never from the line.
        """
        snapshot: Dict[str, Any] = {
            "purchase_order_id": owner.id,
            "po_number": owner.po_number,
            "supplier_code": owner.supplier_code,
            "supplier_name": owner.supplier_name,
            "line_type": OrderType.coerce(owner.order_type).value,
        }
        rows = [PurchaseOrderLine(**{**line.column_values(), **snapshot}) for line in lines]
        await self.add_all(rows)
        await self.flush()
        return len(rows)

    async def resnapshot_lines(self, owner: PurchaseOrderVersion) -> int:
        """Copy the owner's current supplier snapshot onto its existing lines."""
        result = await self.execute(
            update(PurchaseOrderLine)
            .where(PurchaseOrderLine.purchase_order_id == owner.id)
            .values(supplier_code=owner.supplier_code, supplier_name=owner.supplier_name)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class UnitOfMeasurementRepository(BaseRepository):
    """Insert-or-ignore access to the unit label catalogue."""

    async def ensure_units(self, labels: Iterable[str]) -> None:
        distinct = sorted({label.strip() for label in labels if label and label.strip()})
        if not distinct:
            return
        values = [{"unit_label": label} for label in distinct]
        if self.dialect_name == "postgresql":
            stmt = pg_insert(UnitOfMeasurement).values(values)
        elif self.dialect_name == "sqlite":
            stmt = sqlite_insert(UnitOfMeasurement).values(values)
        else:
            await self._ensure_units_portable(distinct)
            return
        await self.execute(stmt.on_conflict_do_nothing(index_elements=["unit_label"]))

    async def _ensure_units_portable(self, labels: List[str]) -> None:
        existing = set(
            await self.scalars(
                select(UnitOfMeasurement.unit_label).where(UnitOfMeasurement.unit_label.in_(labels))
            )
        )
        await self.add_all(UnitOfMeasurement(unit_label=label) for label in labels if label not in existing)
        await self.flush()

    async def list_labels(self) -> List[str]:
        stmt = select(UnitOfMeasurement.unit_label).order_by(UnitOfMeasurement.unit_label)
        return list(await self.scalars(stmt))
