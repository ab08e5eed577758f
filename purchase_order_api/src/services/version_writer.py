from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ValidationError
from src.domain.projection import HeaderProjection, HeaderSchema
from src.domain.purchase_orders import LineItem, OrderType, PurchaseOrderVersion
from src.domain.reconciliation import ReconciledLines, round_currency
from src.repositories.procurement import (
    PurchaseOrderRepository,
    UnitOfMeasurementRepository,
    to_version,
)
from src.services.base import BaseService

logger = logging.getLogger(__name__)


class VersionWriteResult(BaseModel):
    """Outcome of a version write."""
    version: PurchaseOrderVersion
    forked: bool
    line_count: int
    total_amount: Optional[float] = None

    @property
    def version_id(self) -> int:
        assert self.version.id is not None
        return self.version.id


class VersionWriter(BaseService):
    """
    Persists reconciled line sets and header edits against a version chain.

    Every public method runs as a single unit of work: either the header
    change, the line deletion and the line insertion all commit, or none of
    them do. Callers must have confirmed the target is the latest version.
    """

    def __init__(self, session: AsyncSession, header_schema: Optional[HeaderSchema] = None) -> None:
        super().__init__(session)
        self.header_schema = header_schema or HeaderSchema.from_optional_columns(())
        self.po_repo = PurchaseOrderRepository(session, self.header_schema)
        self.uom_repo = UnitOfMeasurementRepository(session)

    def _financials(self, reconciled: ReconciledLines) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "subtotal": round_currency(reconciled.subtotal),
            "vat_percent": reconciled.vat_percent,
            "vat_amount": round_currency(reconciled.vat_amount),
            "total_amount": round_currency(reconciled.total_amount),
        }
        if self.header_schema.has("exclusive_amount"):
            values["exclusive_amount"] = values["subtotal"]
        return values

    def _fork(self, target: PurchaseOrderVersion, changes: Dict[str, Any]) -> PurchaseOrderVersion:
        # Values of columns this deployment does not use never carry forward.
        return target.fork(clear=self.header_schema.disabled_optional_columns, **changes)

    async def _reload(self, version_id: int) -> PurchaseOrderVersion:
        row = await self.po_repo.get_version(version_id, refresh=True)
        assert row is not None
        return to_version(row)

    # PUBLIC_INTERFACE
    async def write(
        self,
        target: PurchaseOrderVersion,
        reconciled: ReconciledLines,
        fork_new_version: bool,
    ) -> VersionWriteResult:
        """
        Store ``reconciled`` as the line set of ``target`` or of a fork of it.

        In place: the target's financial fields are updated, its lines deleted
        and the new lines inserted under the same id. Fork: a copy of the target
        carrying the new totals is inserted and the lines attach to it; the
        target and its lines are left untouched.
        """
        if target.id is None:
            raise ValueError("write() needs a persisted target version")
        if reconciled.order_type is not target.order_type:
            raise ValidationError(
                "Line layout does not match the purchase order type.",
                details={"order_type": target.order_type.value},
            )

        financials = self._financials(reconciled)
        async with self.unit_of_work():
            if fork_new_version:
                row = await self.po_repo.insert_version(self._fork(target, financials))
                owner = to_version(row)
            else:
                await self.po_repo.apply_update(
                    HeaderProjection(assignments=financials).to_statement(target.id)
                )
                await self.po_repo.delete_lines(target.id)
                owner = await self._reload(target.id)

            count = await self.po_repo.insert_lines(owner, reconciled.lines)
            if owner.order_type is OrderType.STANDARD:
                await self.uom_repo.ensure_units(line.unit or "" for line in reconciled.lines)

        logger.info(
            "PO %s: %s version %s with %d lines, total %.2f",
            owner.po_number,
            "forked" if fork_new_version else "updated",
            owner.id,
            count,
            reconciled.total_amount,
        )
        return VersionWriteResult(
            version=owner,
            forked=fork_new_version,
            line_count=count,
            total_amount=owner.total_amount,
        )

    # PUBLIC_INTERFACE
    async def write_header(
        self,
        target: PurchaseOrderVersion,
        projection: HeaderProjection,
        fork_new_version: bool,
    ) -> VersionWriteResult:
        """
        Apply a projected header edit in place, or fork a new version with it.

        A fork copies the target's lines onto the new version. In both cases the
        lines' supplier snapshot follows the header's supplier.
        """
        if target.id is None:
            raise ValueError("write_header() needs a persisted target version")

        async with self.unit_of_work():
            if fork_new_version:
                row = await self.po_repo.insert_version(self._fork(target, projection.assignments))
                owner = to_version(row)
                existing = [
                    LineItem.model_validate(line)
                    for line in await self.po_repo.list_lines(target.id)
                ]
                count = await self.po_repo.insert_lines(owner, existing)
            else:
                await self.po_repo.apply_update(projection.to_statement(target.id))
                owner = await self._reload(target.id)
                count = await self.po_repo.resnapshot_lines(owner)

        logger.info(
            "PO %s: header %s as version %s (%s)",
            owner.po_number,
            "forked" if fork_new_version else "updated",
            owner.id,
            ", ".join(sorted(projection.assignments)),
        )
        return VersionWriteResult(
            version=owner,
            forked=fork_new_version,
            line_count=count,
            total_amount=owner.total_amount,
        )
