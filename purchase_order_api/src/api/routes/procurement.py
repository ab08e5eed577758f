from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query

from src.core.deps import get_purchase_order_service, require_roles
from src.schemas.procurement import (
    HeaderUpdateResponse,
    LinesUpdateResponse,
    PurchaseOrderHeaderUpdate,
    PurchaseOrderLinesUpdate,
    PurchaseOrderRead,
    PurchaseOrderView,
)
from src.services.purchase_orders import PurchaseOrderService

router = APIRouter(prefix="/procurement", tags=["Procurement"])


# PUBLIC_INTERFACE
@router.post(
    "/purchase_order_update",
    response_model=HeaderUpdateResponse,
    summary="Update purchase order header",
    description=(
        "Edit the header of the current version of a purchase order. "
        'update_current_header="1" (default) updates in place; any other value '
        "forks a new version and copies the lines onto it."
    ),
    dependencies=[Depends(require_roles("procurement:manage"))],
)
async def update_purchase_order_header(
    payload: PurchaseOrderHeaderUpdate,
    service: PurchaseOrderService = Depends(get_purchase_order_service),
) -> HeaderUpdateResponse:
    result = await service.update_header(payload)
    return HeaderUpdateResponse(
        message="Purchase order updated successfully.",
        purchase_order=PurchaseOrderRead.model_validate(result.version),
    )


# PUBLIC_INTERFACE
@router.post(
    "/purchase_order_lines_update",
    response_model=LinesUpdateResponse,
    summary="Replace purchase order lines",
    description=(
        "Replace the whole line set of the current version and recompute its totals. "
        'update_current_header="1" replaces in place; any other value forks a new version.'
    ),
    dependencies=[Depends(require_roles("procurement:manage"))],
)
async def update_purchase_order_lines(
    payload: PurchaseOrderLinesUpdate,
    service: PurchaseOrderService = Depends(get_purchase_order_service),
) -> LinesUpdateResponse:
    result = await service.replace_lines(payload)
    return LinesUpdateResponse(
        message="Purchase order lines updated successfully.",
        purchase_order_id=result.version_id,
        total_amount=result.total_amount,
    )


# PUBLIC_INTERFACE
@router.get(
    "/purchase-orders/{po_number}",
    response_model=PurchaseOrderView,
    summary="View purchase order",
    description="Latest version of a PO with its lines, line summary and order book navigation.",
    dependencies=[Depends(require_roles("procurement:view", "procurement:manage"))],
)
async def get_purchase_order(
    po_number: str = Path(..., description="PO number"),
    order_book: Optional[str] = Query(None, description="Restrict to one order book"),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
) -> PurchaseOrderView:
    return await service.get_view(po_number, order_book)


# PUBLIC_INTERFACE
@router.get(
    "/purchase-orders/{po_number}/versions",
    response_model=List[PurchaseOrderRead],
    summary="List purchase order versions",
    description="Every saved version of a PO, newest first.",
    dependencies=[Depends(require_roles("procurement:view", "procurement:manage"))],
)
async def list_purchase_order_versions(
    po_number: str = Path(..., description="PO number"),
    service: PurchaseOrderService = Depends(get_purchase_order_service),
) -> List[PurchaseOrderRead]:
    versions = await service.list_versions(po_number)
    return [PurchaseOrderRead.model_validate(v) for v in versions]
