from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.domain.numbers import normalize_date, normalize_number, parse_optional_number
from src.domain.projection import HeaderSchema, project_update
from src.domain.purchase_orders import LineItem, OrderType, PurchaseOrderVersion
from src.domain.reconciliation import reconcile, summarize
from src.repositories.procurement import PurchaseOrderRepository, SupplierRepository, to_version
from src.schemas.procurement import (
    ExternalPurchaseOrderCreate,
    PurchaseOrderHeaderUpdate,
    PurchaseOrderLineRead,
    PurchaseOrderLinesUpdate,
    PurchaseOrderRead,
    PurchaseOrderView,
)
from src.services.base import BaseService
from src.services.version_writer import VersionWriter, VersionWriteResult

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("supplier_name", "supplier_code", "order_sheet_no", "reference")
_AMOUNT_FIELDS = ("exclusive_amount", "vat_percent", "vat_amount", "total_amount")


def _clean_text(value: Optional[str]) -> str:
    return (value or "").strip()


def _header_changes(submitted: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize the header form fields that were actually sent."""
    changes: Dict[str, Any] = {}
    for field in _TEXT_FIELDS:
        if field in submitted:
            changes[field] = _clean_text(submitted[field])
    if "supplier_name" in changes and not changes["supplier_name"]:
        raise ValidationError("Supplier name cannot be empty.", details={"field": "supplier_name"})
    if "order_date" in submitted:
        changes["order_date"] = normalize_date(submitted["order_date"], field="order_date")
    for field in _AMOUNT_FIELDS:
        if field in submitted:
            changes[field] = parse_optional_number(submitted[field], field=field)
    return changes


class PurchaseOrderService(BaseService):
    """
    Business logic for purchase order versions: editability checks, header
    edits, line replacement, the read view and external header inserts.
    """

    def __init__(self, session: AsyncSession, header_schema: Optional[HeaderSchema] = None) -> None:
        super().__init__(session)
        self.header_schema = header_schema or HeaderSchema.from_optional_columns(())
        self.po_repo = PurchaseOrderRepository(session, self.header_schema)
        self.supplier_repo = SupplierRepository(session)
        self.writer = VersionWriter(session, self.header_schema)

    # PUBLIC_INTERFACE
    async def get_version(self, version_id: int) -> PurchaseOrderVersion:
        """Load one version; raises NotFoundError when the id does not exist."""
        row = await self.po_repo.get_version(version_id)
        if row is None:
            raise NotFoundError(
                "The requested purchase order could not be found.",
                details={"purchase_order_id": version_id},
            )
        return to_version(row)

    # PUBLIC_INTERFACE
    async def resolve_latest(self, po_number: str) -> Optional[int]:
        """Id of the current version of ``po_number``, or None."""
        return await self.po_repo.resolve_latest(po_number)

    # PUBLIC_INTERFACE
    async def assert_editable(self, candidate_id: int, po_number: str) -> None:
        """Raise ConflictError unless ``candidate_id`` is the current version."""
        latest_id = await self.resolve_latest(po_number)
        if latest_id != candidate_id:
            logger.warning(
                "Rejected edit of stale PO %s version %s (latest is %s)",
                po_number,
                candidate_id,
                latest_id,
            )
            raise ConflictError(candidate_id, latest_id, po_number)

    async def _editable_version(self, version_id: int) -> PurchaseOrderVersion:
        target = await self.get_version(version_id)
        assert target.id is not None
        await self.assert_editable(target.id, target.po_number)
        return target

    # PUBLIC_INTERFACE
    async def update_header(self, request: PurchaseOrderHeaderUpdate) -> VersionWriteResult:
        """
        Apply a header edit to the current version of a PO.

        The form fields are validated first, then the target must be the latest
        version, then the edit is projected onto the deployment's columns.
        """
        changes = _header_changes(request.submitted_fields())
        target = await self._editable_version(request.purchase_order_id)
        projection = project_update(self.header_schema, changes)
        return await self.writer.write_header(
            target, projection, fork_new_version=not request.in_place()
        )

    # PUBLIC_INTERFACE
    async def replace_lines(self, request: PurchaseOrderLinesUpdate) -> VersionWriteResult:
        """Reconcile and store a full line set for the current version of a PO."""
        target = await self._editable_version(request.purchase_order_id)
        vat_percent = (
            target.vat_percent
            if request.vat_percent is None
            else normalize_number(request.vat_percent)
        )
        reconciled = reconcile(request.lines, target.order_type, vat_percent)
        return await self.writer.write(
            target, reconciled, fork_new_version=not request.in_place()
        )

    # PUBLIC_INTERFACE
    async def get_view(self, po_number: str, order_book: Optional[str] = None) -> PurchaseOrderView:
        """
        Latest version of a PO with its lines, line summary and the neighbouring
        PO numbers. Navigation spans every PO unless ``order_book`` narrows it.
        """
        po_number = _clean_text(po_number)
        order_book = _clean_text(order_book) or None
        if not po_number:
            raise ValidationError("A purchase order number is required.")

        row = await self.po_repo.get_latest(po_number, order_book=order_book)
        if row is None:
            raise NotFoundError(
                "The requested purchase order could not be found.",
                details={"po_number": po_number, "order_book": order_book},
            )
        version = to_version(row)
        assert version.id is not None
        lines = [LineItem.model_validate(line) for line in await self.po_repo.list_lines(version.id)]

        siblings = await self.po_repo.list_latest_po_numbers(order_book=order_book)
        previous_po = next_po = None
        if po_number in siblings:
            index = siblings.index(po_number)
            previous_po = siblings[index - 1] if index > 0 else None
            next_po = siblings[index + 1] if index + 1 < len(siblings) else None

        return PurchaseOrderView(
            purchase_order=PurchaseOrderRead.model_validate(version, from_attributes=True),
            lines=[PurchaseOrderLineRead.model_validate(line, from_attributes=True) for line in lines],
            po_type=version.order_type,
            line_summary=summarize(lines, version.order_type, version.vat_percent),
            previous_po=previous_po,
            next_po=next_po,
        )

    # PUBLIC_INTERFACE
    async def list_versions(self, po_number: str) -> List[PurchaseOrderVersion]:
        """Version history of a PO, newest first; NotFoundError when it has none."""
        rows = await self.po_repo.list_versions(_clean_text(po_number))
        if not rows:
            raise NotFoundError(
                "The requested purchase order could not be found.",
                details={"po_number": po_number},
            )
        return [to_version(row) for row in rows]

    # PUBLIC_INTERFACE
    async def create_external(self, payload: ExternalPurchaseOrderCreate) -> PurchaseOrderVersion:
        """
        Insert a header version submitted by an external system.

        Always inserts. The supplier snapshot comes from the supplier master;
        the layout is inherited from the PO's current version when it has one.
        """
        po_number = _clean_text(payload.po_number)
        supplier_code = _clean_text(payload.supplier_code).upper()
        if not po_number or not supplier_code:
            raise ValidationError("Missing po_number or supplier_code")

        supplier = await self.supplier_repo.get_by_code(supplier_code)
        if supplier is None:
            raise ValidationError(
                "Supplier not found",
                details={"error_code": "SUPPLIER_NOT_FOUND", "supplier_code": supplier_code},
            )

        latest_id = await self.po_repo.resolve_latest(po_number)
        if latest_id is not None:
            order_type = (await self.get_version(latest_id)).order_type
        else:
            order_type = OrderType.coerce(payload.order_type)

        version = PurchaseOrderVersion(
            po_number=po_number,
            order_book=_clean_text(payload.order_book) or None,
            order_sheet_no=_clean_text(payload.order_sheet_no) or None,
            supplier_id=supplier.id,
            supplier_code=supplier_code,
            supplier_name=supplier.supplier_name,
            order_date=normalize_date(payload.order_date, field="order_date"),
            cost_code=_clean_text(payload.cost_code) or None,
            cost_code_description=_clean_text(payload.cost_code_description) or None,
            terms=_clean_text(payload.terms) or None,
            reference=_clean_text(payload.reference) or None,
            order_type=order_type,
            subtotal=parse_optional_number(payload.subtotal, field="subtotal"),
            vat_percent=parse_optional_number(payload.vat_percent, field="vat_percent"),
            vat_amount=parse_optional_number(payload.vat_amount, field="vat_amount"),
            misc1_label=_clean_text(payload.misc1_label) or None,
            misc1_amount=parse_optional_number(payload.misc1_amount, field="misc1_amount"),
            misc2_label=_clean_text(payload.misc2_label) or None,
            misc2_amount=parse_optional_number(payload.misc2_amount, field="misc2_amount"),
            total_amount=parse_optional_number(payload.total_amount, field="total_amount"),
            created_by=_clean_text(payload.created_by) or None,
            source_filename=_clean_text(payload.source_filename) or None,
        )

        async with self.unit_of_work():
            row = await self.po_repo.insert_version(version)
            created = to_version(row)

        logger.info(
            "External insert of PO %s as version %s (%s)",
            created.po_number,
            created.id,
            created.order_type.value,
        )
        return created
