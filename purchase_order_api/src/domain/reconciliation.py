"""
Line reconciliation and display summaries.

``reconcile`` turns a submitted line set into numbered LineItems plus the header
aggregates a save persists. ``summarize`` recomputes a stored line set's total
for read views. Both share the per-line VAT-ability defaults below, so a
displayed total is always what the next save would store. Line amounts are
rounded to cents before they are summed, so the stored lines add up to the
stored header."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

from src.core.exceptions import ValidationError
from src.domain.numbers import normalize_number
from src.domain.purchase_orders import (
    LineInput,
    LineItem,
    OrderType,
    StandardLineInput,
    TransactionalLineInput,
    parse_line_inputs,
)

_CENT = Decimal("0.01")


class ReconciledLines(BaseModel):
    """Validated, renumbered lines and the header totals derived from them."""

    model_config = ConfigDict(frozen=True)

    order_type: OrderType
    vat_percent: float
    lines: List[LineItem]
    subtotal: float
    vat_amount: float
    total_amount: float


class LineSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    sum: float


def round_currency(value: float) -> float:
    """Round half-up to cents, the way amounts are displayed."""
    return float(Decimal(repr(float(value))).quantize(_CENT, rounding=ROUND_HALF_UP))


def default_vatable(flag: Optional[bool], order_type: OrderType, vat_percent: float) -> bool:
    """
    Resolve a line's VAT-ability.

    An explicit flag always wins. Otherwise standard lines follow the header
    (VAT-able when the header VAT percent is positive) and transactional lines
    are VAT-able, since they carry their own VAT amount.
    """
    if flag is not None:
        return bool(flag)
    if order_type is OrderType.TRANSACTIONAL:
        return True
    return vat_percent > 0


def standard_net_price(
    quantity: Optional[float],
    unit_price: Optional[float],
    discount_percent: Optional[float],
    net_price: Optional[float],
) -> float:
    """Client-supplied net price wins; otherwise quantity x price less discount."""
    if net_price is not None:
        return float(net_price)
    qty = max(0.0, quantity or 0.0)
    discount = max(0.0, discount_percent or 0.0)
    return qty * (unit_price or 0.0) * (1 - discount / 100)


def transactional_line_total(
    ex_vat_amount: Optional[float],
    line_vat_amount: Optional[float],
    line_total_amount: Optional[float],
) -> float:
    if line_total_amount is not None:
        return float(line_total_amount)
    return (ex_vat_amount or 0.0) + (line_vat_amount or 0.0)


def _standard_line(line_no: int, line: StandardLineInput, vat_percent: float) -> LineItem:
    quantity = max(0.0, line.quantity or 0.0)
    discount = max(0.0, line.discount_percent or 0.0)
    unit_price = line.unit_price or 0.0
    return LineItem(
        line_no=line_no,
        line_type=OrderType.STANDARD,
        is_vatable=default_vatable(line.is_vatable, OrderType.STANDARD, vat_percent),
        item_code=line.item_code,
        description=line.description,
        quantity=quantity,
        unit=line.unit,
        unit_price=unit_price,
        discount_percent=discount,
        net_price=round_currency(standard_net_price(quantity, unit_price, discount, line.net_price)),
    )


def _transactional_line(line_no: int, line: TransactionalLineInput, vat_percent: float) -> LineItem:
    ex_vat = round_currency(line.ex_vat_amount or 0.0)
    line_vat = round_currency(line.line_vat_amount or 0.0)
    return LineItem(
        line_no=line_no,
        line_type=OrderType.TRANSACTIONAL,
        is_vatable=default_vatable(line.is_vatable, OrderType.TRANSACTIONAL, vat_percent),
        line_date=line.line_date,
        description=line.description,
        deposit_amount=None if line.deposit_amount is None else round_currency(line.deposit_amount),
        ex_vat_amount=ex_vat,
        line_vat_amount=line_vat,
        line_total_amount=round_currency(
            transactional_line_total(ex_vat, line_vat, line.line_total_amount)
        ),
    )


# PUBLIC_INTERFACE
def reconcile(
    raw_lines: Any,
    order_type: OrderType,
    header_vat_percent: Any,
) -> ReconciledLines:
    """
    Validate a submitted line set and compute the header totals.

    Parameters:
        raw_lines: JSON string, list of dicts, or already-parsed LineInput models.
        order_type: layout of the owning version; selects how lines are read.
        header_vat_percent: header VAT percent (any numeric form).

    Returns:
        ReconciledLines with lines numbered 1..n in submission order.

    Raises:
        ValidationError: a non-blank line lacks its identity field, or no line
            survives the blank filter.
    """
    order_type = OrderType.coerce(order_type)
    vat_percent = normalize_number(header_vat_percent)
    vat_rate = max(0.0, vat_percent) / 100
    inputs: List[LineInput] = parse_line_inputs(raw_lines, order_type)

    lines: List[LineItem] = []
    subtotal = 0.0
    vat_amount = 0.0
    total_amount = 0.0

    for index, line in enumerate(inputs):
        if line.is_blank():
            continue
        if not line.has_identity():
            raise ValidationError(
                "line missing required identity field",
                details={
                    "index": index,
                    "required": ["item_code", "description"]
                    if order_type is OrderType.STANDARD
                    else ["description"],
                },
            )

        line_no = len(lines) + 1
        if order_type is OrderType.STANDARD:
            item = _standard_line(line_no, line, vat_percent)  # type: ignore[arg-type]
            net = item.net_price or 0.0
            subtotal += net
            if item.is_vatable:
                vat_amount += net * vat_rate
        else:
            item = _transactional_line(line_no, line, vat_percent)  # type: ignore[arg-type]
            subtotal += item.ex_vat_amount or 0.0
            vat_amount += item.line_vat_amount or 0.0
            total_amount += item.line_total_amount or 0.0
        lines.append(item)

    if not lines:
        raise ValidationError("no valid lines")

    if order_type is OrderType.STANDARD:
        total_amount = subtotal + vat_amount

    return ReconciledLines(
        order_type=order_type,
        vat_percent=vat_percent,
        lines=lines,
        subtotal=subtotal,
        vat_amount=vat_amount,
        total_amount=total_amount,
    )


# PUBLIC_INTERFACE
def summarize(
    lines: Iterable[LineItem],
    order_type: OrderType,
    header_vat_percent: Any,
) -> LineSummary:
    """
    Sum a stored line set for display.

    Standard lines contribute their net price plus VAT when VAT-able;
    transactional lines contribute their line total. Each contribution is
    rounded to cents before it is added, and the sum is rounded again.
    """
    order_type = OrderType.coerce(order_type)
    vat_percent = normalize_number(header_vat_percent)
    vat_rate = max(0.0, vat_percent) / 100

    count = 0
    total = 0.0
    for line in lines:
        count += 1
        if order_type is OrderType.TRANSACTIONAL:
            contribution = transactional_line_total(
                line.ex_vat_amount, line.line_vat_amount, line.line_total_amount
            )
        else:
            net = standard_net_price(
                line.quantity, line.unit_price, line.discount_percent, line.net_price
            )
            vatable = default_vatable(line.is_vatable, OrderType.STANDARD, vat_percent)
            contribution = net + (net * vat_rate if vatable else 0.0)
        total += round_currency(contribution)

    return LineSummary(count=count, sum=round_currency(total))
