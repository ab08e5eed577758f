from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Optional, Sequence, Type, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from src.core.exceptions import ValidationError
from src.domain.numbers import normalize_date, normalize_number


class OrderType(str, Enum):
    """Line layout of a purchase order; fixed for the life of a PO number."""

    STANDARD = "standard"
    TRANSACTIONAL = "transactional"

    @classmethod
    def coerce(cls, raw: Any) -> "OrderType":
        """Map stored or submitted labels onto a layout; unknown values mean standard."""
        if isinstance(raw, OrderType):
            return raw
        label = str(raw or "").strip().lower()
        if label in ("transactional", "txn"):
            return cls.TRANSACTIONAL
        return cls.STANDARD


# Fields a fork must never take from the caller.
_FORK_PROTECTED = frozenset({"id", "created_at", "updated_at", "order_type"})


class PurchaseOrderVersion(BaseModel):
    """
    Immutable snapshot of one saved state of a purchase order header.

    The row with the highest ``id`` for a ``po_number`` is the current version.
    New versions are only ever produced through :meth:`fork`, which carries
    every header field forward and keeps ``order_type`` pinned.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: Optional[int] = None
    po_number: str
    order_book: Optional[str] = None
    order_sheet_no: Optional[str] = None
    supplier_id: Optional[int] = None
    supplier_code: Optional[str] = None
    supplier_name: Optional[str] = None
    order_date: Optional[date] = None
    cost_code: Optional[str] = None
    cost_code_description: Optional[str] = None
    terms: Optional[str] = None
    reference: Optional[str] = None
    order_type: OrderType = OrderType.STANDARD
    subtotal: Optional[float] = None
    exclusive_amount: Optional[float] = None
    vat_percent: Optional[float] = None
    vat_amount: Optional[float] = None
    misc1_label: Optional[str] = None
    misc1_amount: Optional[float] = None
    misc2_label: Optional[str] = None
    misc2_amount: Optional[float] = None
    total_amount: Optional[float] = None
    created_by: Optional[str] = None
    source_filename: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def fork(self, *, clear: Iterable[str] = (), **overrides: Any) -> "PurchaseOrderVersion":
        """
        Return an unsaved copy of this version with ``overrides`` applied.

        Identity and timestamps are cleared so the database assigns new ones,
        as are the fields named in ``clear``. ``order_type`` cannot be
        overridden.
        """
        clear = frozenset(clear)
        protected = _FORK_PROTECTED.intersection(clear.union(overrides))
        if protected:
            raise ValueError(f"fork() cannot override {sorted(protected)}")
        unknown = (set(overrides) | clear) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown purchase order fields: {sorted(unknown)}")
        data = self.model_dump(exclude={"id", "created_at", "updated_at"})
        data.update(dict.fromkeys(clear))
        data.update(overrides)
        return PurchaseOrderVersion.model_validate(data)

    def column_values(self, omit: Iterable[str] = ()) -> Dict[str, Any]:
        """
        Header values ready for an INSERT (no identity, no timestamps).

        ``omit`` names columns the target table may not have; they are left
        out of the INSERT entirely.
        """
        data = self.model_dump(exclude={"id", "created_at", "updated_at", *omit})
        data["order_type"] = self.order_type.value
        return data


class LineItem(BaseModel):
    """A reconciled or stored purchase order line."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    line_no: int
    line_type: OrderType = OrderType.STANDARD
    is_vatable: Optional[bool] = None

    # Snapshot copies of the owning version, filled in when the line is written.
    purchase_order_id: Optional[int] = None
    po_number: Optional[str] = None
    supplier_code: Optional[str] = None
    supplier_name: Optional[str] = None

    # Standard layout
    item_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = None
    discount_percent: Optional[float] = None
    net_price: Optional[float] = None

    # Transactional layout
    line_date: Optional[date] = None
    deposit_amount: Optional[float] = None
    ex_vat_amount: Optional[float] = None
    line_vat_amount: Optional[float] = None
    line_total_amount: Optional[float] = None

    def column_values(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["line_type"] = self.line_type.value
        return data


# --- Boundary validation for submitted lines ---------------------------------


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _optional_amount(value: Any) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return normalize_number(value)


def _optional_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        label = value.strip().lower()
        if label == "":
            return None
        if label in ("true", "yes", "on", "y"):
            return True
        if label in ("false", "no", "off", "n"):
            return False
    return normalize_number(value) != 0


def _informational_int(value: Any) -> Optional[int]:
    number = normalize_number(value)
    return int(number) if number else None


def _line_date(value: Any) -> Optional[date]:
    return normalize_date(value, field="line_date")


Text = Annotated[str, BeforeValidator(_text)]
Amount = Annotated[Optional[float], BeforeValidator(_optional_amount)]
Flag = Annotated[Optional[bool], BeforeValidator(_optional_flag)]
LineNo = Annotated[Optional[int], BeforeValidator(_informational_int)]
LineDate = Annotated[Optional[date], BeforeValidator(_line_date)]


def _empty(*amounts: Optional[float]) -> bool:
    return all(not amount for amount in amounts)


class StandardLineInput(BaseModel):
    """Item / quantity / discount line as submitted by a client."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    line_no: LineNo = None
    item_code: Text = ""
    description: Text = ""
    quantity: Amount = None
    unit: Text = ""
    unit_price: Amount = None
    discount_percent: Amount = None
    net_price: Amount = None
    is_vatable: Flag = None

    def is_blank(self) -> bool:
        return (
            not self.item_code
            and not self.description
            and _empty(self.quantity, self.unit_price, self.discount_percent, self.net_price)
        )

    def has_identity(self) -> bool:
        return bool(self.item_code or self.description)


class TransactionalLineInput(BaseModel):
    """Deposit / VAT breakdown line as submitted by a client."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    line_no: LineNo = None
    line_date: LineDate = None
    description: Text = ""
    deposit_amount: Amount = None
    ex_vat_amount: Amount = None
    line_vat_amount: Amount = None
    line_total_amount: Amount = None
    is_vatable: Flag = None

    def is_blank(self) -> bool:
        return not self.description and _empty(
            self.deposit_amount,
            self.ex_vat_amount,
            self.line_vat_amount,
            self.line_total_amount,
        )

    def has_identity(self) -> bool:
        return bool(self.description)


LineInput = Union[StandardLineInput, TransactionalLineInput]

_INPUT_MODELS: Dict[OrderType, Type[BaseModel]] = {
    OrderType.STANDARD: StandardLineInput,
    OrderType.TRANSACTIONAL: TransactionalLineInput,
}


# PUBLIC_INTERFACE
def parse_line_inputs(raw_lines: Any, order_type: OrderType) -> List[LineInput]:
    """
    Validate a submitted line payload into the layout of the owning version.

    ``raw_lines`` may be a JSON-encoded array (as posted by the edit screen) or
    an already decoded sequence. The layout comes from ``order_type``, never
    from the payload itself.
    """
    if isinstance(raw_lines, (str, bytes)):
        try:
            raw_lines = json.loads(raw_lines or "[]")
        except ValueError:
            raise ValidationError("Line data must be valid JSON.")
    if raw_lines is None:
        raw_lines = []
    if not isinstance(raw_lines, Sequence) or isinstance(raw_lines, (str, bytes)):
        raise ValidationError("Line data must be a JSON array.")

    order_type = OrderType.coerce(order_type)
    model = _INPUT_MODELS[order_type]
    parsed: List[LineInput] = []
    for index, raw in enumerate(raw_lines):
        if isinstance(raw, model):
            parsed.append(raw)  # type: ignore[arg-type]
            continue
        if not isinstance(raw, dict):
            raise ValidationError(
                "Each line must be a JSON object.", details={"index": index}
            )
        try:
            parsed.append(model.model_validate(raw))  # type: ignore[arg-type]
        except PydanticValidationError as exc:
            raise ValidationError(
                "Line data is malformed.",
                details={"index": index, "errors": exc.errors(include_url=False, include_context=False)},
            )
    return parsed
