from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.domain.purchase_orders import OrderType
from src.domain.reconciliation import LineSummary

# Numeric form fields arrive either as JSON numbers or as formatted strings
# such as "1 234.50"; the service normalizes them.
FormNumber = Optional[Union[float, str]]


def wants_in_place(flag: Any) -> bool:
    """The edit screens post "1" to update the current version in place."""
    if isinstance(flag, bool):
        return flag
    return str(flag).strip() == "1"


class PurchaseOrderHeaderUpdate(BaseModel):
    """Header edit form. Only the fields actually sent are applied."""
    purchase_order_id: int = Field(..., gt=0, description="Version being edited")
    supplier_name: Optional[str] = Field(None)
    supplier_code: Optional[str] = Field(None)
    order_sheet_no: Optional[str] = Field(None)
    reference: Optional[str] = Field(None)
    order_date: Optional[str] = Field(None, description="YYYY-MM-DD (YYYY/MM/DD accepted)")
    exclusive_amount: FormNumber = Field(None, description="Subtotal excluding VAT")
    vat_percent: FormNumber = Field(None)
    vat_amount: FormNumber = Field(None)
    total_amount: FormNumber = Field(None)
    update_current_header: Union[str, int, bool] = Field(
        "1", description='"1" updates the version in place; anything else forks a new version'
    )

    def in_place(self) -> bool:
        return wants_in_place(self.update_current_header)

    def submitted_fields(self) -> dict:
        return self.model_dump(
            exclude_unset=True, exclude={"purchase_order_id", "update_current_header"}
        )


class PurchaseOrderLinesUpdate(BaseModel):
    """Full replacement of a version's line set."""
    purchase_order_id: int = Field(..., gt=0, description="Version being edited")
    vat_percent: FormNumber = Field(None, description="Defaults to the version's VAT percent")
    lines: Union[str, List[Any]] = Field("[]", description="JSON-encoded array of lines, or an array")
    update_current_header: Union[str, int, bool] = Field(
        "0", description='"1" replaces the lines in place; anything else forks a new version'
    )

    def in_place(self) -> bool:
        return wants_in_place(self.update_current_header)


class PurchaseOrderRead(BaseModel):
    """PO header version read model."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Version id")
    po_number: str = Field(..., description="PO number")
    order_book: Optional[str] = Field(None)
    order_sheet_no: Optional[str] = Field(None)
    supplier_id: Optional[int] = Field(None)
    supplier_code: Optional[str] = Field(None)
    supplier_name: Optional[str] = Field(None)
    order_date: Optional[date] = Field(None)
    cost_code: Optional[str] = Field(None)
    cost_code_description: Optional[str] = Field(None)
    terms: Optional[str] = Field(None)
    reference: Optional[str] = Field(None)
    order_type: OrderType = Field(OrderType.STANDARD)
    subtotal: Optional[float] = Field(None)
    exclusive_amount: Optional[float] = Field(None)
    vat_percent: Optional[float] = Field(None)
    vat_amount: Optional[float] = Field(None)
    misc1_label: Optional[str] = Field(None)
    misc1_amount: Optional[float] = Field(None)
    misc2_label: Optional[str] = Field(None)
    misc2_amount: Optional[float] = Field(None)
    total_amount: Optional[float] = Field(None)
    created_by: Optional[str] = Field(None)
    source_filename: Optional[str] = Field(None)
    created_at: Optional[datetime] = Field(None)
    updated_at: Optional[datetime] = Field(None)


class PurchaseOrderLineRead(BaseModel):
    """PO line read model."""
    model_config = ConfigDict(from_attributes=True)

    purchase_order_id: int = Field(..., description="Owning version id")
    line_no: int = Field(..., description="Line number, 1..n")
    line_type: OrderType = Field(OrderType.STANDARD)
    is_vatable: Optional[bool] = Field(None)
    item_code: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    quantity: Optional[float] = Field(None)
    unit: Optional[str] = Field(None)
    unit_price: Optional[float] = Field(None)
    discount_percent: Optional[float] = Field(None)
    net_price: Optional[float] = Field(None)
    line_date: Optional[date] = Field(None)
    deposit_amount: Optional[float] = Field(None)
    ex_vat_amount: Optional[float] = Field(None)
    line_vat_amount: Optional[float] = Field(None)
    line_total_amount: Optional[float] = Field(None)


class PurchaseOrderView(BaseModel):
    """Latest version of a PO with its lines and navigation within the order book."""
    purchase_order: PurchaseOrderRead
    lines: List[PurchaseOrderLineRead]
    po_type: OrderType
    line_summary: LineSummary
    previous_po: Optional[str] = Field(None, description="Previous PO number in the order book")
    next_po: Optional[str] = Field(None, description="Next PO number in the order book")


class HeaderUpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    purchase_order: PurchaseOrderRead = Field(..., alias="purchaseOrder")


class LinesUpdateResponse(BaseModel):
    success: bool = True
    message: str
    purchase_order_id: int
    total_amount: Optional[float] = None


class ExternalPurchaseOrderCreate(BaseModel):
    """Header insert submitted by an external system."""
    model_config = ConfigDict(extra="ignore")

    api_key: Optional[str] = Field(None, description="Shared secret; the X-API-Key header also works")
    po_number: str = Field("", description="PO number")
    supplier_code: str = Field("", description="Supplier code (case-insensitive)")
    order_book: Optional[str] = Field(None)
    order_sheet_no: Optional[str] = Field(None)
    order_date: Optional[str] = Field(None)
    cost_code: Optional[str] = Field(None)
    cost_code_description: Optional[str] = Field(None)
    terms: Optional[str] = Field(None)
    reference: Optional[str] = Field(None)
    order_type: Optional[str] = Field(None, description="standard or transactional")
    subtotal: FormNumber = Field(None)
    vat_percent: FormNumber = Field(None)
    vat_amount: FormNumber = Field(None)
    misc1_label: Optional[str] = Field(None)
    misc1_amount: FormNumber = Field(None)
    misc2_label: Optional[str] = Field(None)
    misc2_amount: FormNumber = Field(None)
    total_amount: FormNumber = Field(None)
    created_by: Optional[str] = Field(None)
    source_filename: Optional[str] = Field(None)


class ExternalPurchaseOrderCreated(BaseModel):
    success: bool = True
    action: str = "inserted"
    id: int = Field(..., description="New version id")
    po_number: str
