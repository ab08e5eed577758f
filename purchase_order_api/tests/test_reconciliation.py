import json

import pytest

from src.core.exceptions import ValidationError
from src.domain.purchase_orders import LineItem, OrderType
from src.domain.reconciliation import (
    default_vatable,
    reconcile,
    round_currency,
    summarize,
)

STANDARD = OrderType.STANDARD
TRANSACTIONAL = OrderType.TRANSACTIONAL


def test_standard_discounted_line_with_vat():
    result = reconcile(
        [{"item_code": "BOLT-10", "quantity": 2, "unit_price": 100, "discount_percent": 10}],
        STANDARD,
        15,
    )
    assert result.lines[0].net_price == pytest.approx(180.0)
    assert result.subtotal == pytest.approx(180.0)
    assert result.vat_amount == pytest.approx(27.0)
    assert result.total_amount == pytest.approx(207.0)
    assert result.lines[0].is_vatable is True


def test_transactional_totals_sum_line_totals():
    result = reconcile(
        [
            {"description": "Deposit run 1", "ex_vat_amount": 50, "line_vat_amount": 7.5, "line_total_amount": 57.5},
            {"description": "Deposit run 2", "ex_vat_amount": 20, "line_vat_amount": 3, "line_total_amount": 23},
        ],
        TRANSACTIONAL,
        15,
    )
    assert result.subtotal == pytest.approx(70.0)
    assert result.vat_amount == pytest.approx(10.5)
    assert result.total_amount == pytest.approx(80.5)
    assert all(line.is_vatable for line in result.lines)


def test_transactional_total_is_not_recomputed_from_parts():
    result = reconcile(
        [{"description": "Rounded by supplier", "ex_vat_amount": 10, "line_vat_amount": 1.5, "line_total_amount": 11.49}],
        TRANSACTIONAL,
        15,
    )
    assert result.total_amount == pytest.approx(11.49)
    assert result.subtotal + result.vat_amount == pytest.approx(11.5)


def test_transactional_line_total_defaults_to_parts():
    result = reconcile(
        [{"description": "No total", "ex_vat_amount": "1,000", "line_vat_amount": "150", "line_date": "2024/05/01"}],
        TRANSACTIONAL,
        0,
    )
    line = result.lines[0]
    assert line.line_total_amount == pytest.approx(1150.0)
    assert line.line_date.isoformat() == "2024-05-01"


def test_blank_lines_are_skipped_and_survivors_renumbered():
    result = reconcile(
        [
            {"line_no": 7, "item_code": "A", "quantity": 1, "unit_price": 5},
            {"line_no": 8, "item_code": "", "description": "", "quantity": 0, "unit": "EA"},
            {"line_no": 3, "description": "Freight", "net_price": 12.5},
            {},
        ],
        STANDARD,
        0,
    )
    assert [line.line_no for line in result.lines] == [1, 2]
    assert [line.item_code or line.description for line in result.lines] == ["A", "Freight"]


def test_line_without_identity_is_rejected():
    with pytest.raises(ValidationError) as excinfo:
        reconcile([{"item_code": "A", "quantity": 1}, {"quantity": 3, "unit_price": 2}], STANDARD, 15)
    assert excinfo.value.message == "line missing required identity field"
    assert excinfo.value.details["index"] == 1


def test_transactional_line_needs_description():
    with pytest.raises(ValidationError):
        reconcile([{"ex_vat_amount": 10, "line_vat_amount": 1.5}], TRANSACTIONAL, 15)


@pytest.mark.parametrize("lines", [[], [{}, {"item_code": "", "quantity": 0}], "[]"])
def test_no_surviving_lines(lines):
    with pytest.raises(ValidationError) as excinfo:
        reconcile(lines, STANDARD, 15)
    assert excinfo.value.message == "no valid lines"


def test_lines_may_arrive_as_json_text():
    payload = json.dumps([{"item_code": "A", "quantity": "2", "unit_price": "1 000"}])
    result = reconcile(payload, STANDARD, 0)
    assert result.subtotal == pytest.approx(2000.0)
    assert result.vat_amount == 0.0


@pytest.mark.parametrize(
    "payload, message",
    [
        ("not json", "Line data must be valid JSON."),
        ('{"item_code": "A"}', "Line data must be a JSON array."),
        ('["A"]', "Each line must be a JSON object."),
    ],
)
def test_malformed_payloads(payload, message):
    with pytest.raises(ValidationError) as excinfo:
        reconcile(payload, STANDARD, 15)
    assert excinfo.value.message == message


def test_layout_comes_from_order_type_not_payload():
    # Standard fields on a transactional PO are ignored, so nothing survives.
    with pytest.raises(ValidationError):
        reconcile([{"item_code": "A", "quantity": 1, "unit_price": 10}], TRANSACTIONAL, 15)


def test_explicit_vat_flag_wins():
    result = reconcile(
        [
            {"item_code": "A", "net_price": 100, "is_vatable": "0"},
            {"item_code": "B", "net_price": 100},
        ],
        STANDARD,
        10,
    )
    assert [line.is_vatable for line in result.lines] == [False, True]
    assert result.vat_amount == pytest.approx(10.0)
    assert result.total_amount == pytest.approx(210.0)


def test_no_vat_rate_means_lines_default_to_not_vatable():
    result = reconcile([{"item_code": "A", "net_price": 50}], STANDARD, 0)
    assert result.lines[0].is_vatable is False


def test_quantity_and_discount_clamped_but_price_may_be_negative():
    result = reconcile(
        [
            {"item_code": "RET", "quantity": 1, "unit_price": -40, "discount_percent": -5},
            {"item_code": "NEG", "quantity": -3, "unit_price": 10},
        ],
        STANDARD,
        0,
    )
    credit, negative_qty = result.lines
    assert credit.discount_percent == 0.0
    assert credit.net_price == pytest.approx(-40.0)
    assert negative_qty.quantity == 0.0
    assert negative_qty.net_price == 0.0
    assert result.subtotal == pytest.approx(-40.0)


def test_negative_header_vat_counts_as_zero_rate():
    result = reconcile([{"item_code": "A", "net_price": 100, "is_vatable": True}], STANDARD, -15)
    assert result.vat_amount == 0.0
    assert result.total_amount == pytest.approx(100.0)


@pytest.mark.parametrize("vat", [0, 5, 15, 20.5])
def test_uniform_vat_total_matches_subtotal_times_rate(vat):
    lines = [
        {"item_code": f"I-{n}", "quantity": n, "unit_price": 3.33 * n, "discount_percent": n % 4}
        for n in range(1, 9)
    ]
    result = reconcile(lines, STANDARD, vat)
    assert result.total_amount == pytest.approx(result.subtotal * (1 + vat / 100), abs=0.01)


def test_round_currency_is_half_up():
    assert round_currency(2.675) == 2.68
    assert round_currency(0.125) == 0.13
    assert round_currency(-1.005) == -1.01


def test_default_vatable_rules():
    assert default_vatable(None, STANDARD, 15) is True
    assert default_vatable(None, STANDARD, 0) is False
    assert default_vatable(None, TRANSACTIONAL, 0) is True
    assert default_vatable(False, TRANSACTIONAL, 15) is False


def test_summarize_standard_includes_vat_per_vatable_line():
    lines = [
        LineItem(line_no=1, item_code="A", quantity=3, unit_price=3.335, net_price=10.005),
        LineItem(line_no=2, item_code="B", net_price=20, is_vatable=False),
    ]
    summary = summarize(lines, STANDARD, 10)
    # 10.005 + 1.0005 = 11.0055 -> 11.01 ; 20.00
    assert summary.count == 2
    assert summary.sum == 31.01


def test_summarize_transactional_uses_line_totals():
    lines = [
        LineItem(line_no=1, line_type=TRANSACTIONAL, ex_vat_amount=50, line_vat_amount=7.5, line_total_amount=57.5),
        LineItem(line_no=2, line_type=TRANSACTIONAL, ex_vat_amount=20, line_vat_amount=3),
    ]
    summary = summarize(lines, TRANSACTIONAL, 15)
    assert summary.count == 2
    assert summary.sum == 80.5


def test_summary_matches_what_a_save_would_store():
    raw = [
        {"item_code": "A", "quantity": 4, "unit_price": 12.5, "discount_percent": 5},
        {"item_code": "B", "quantity": 1, "unit_price": 99.99, "is_vatable": False},
    ]
    reconciled = reconcile(raw, STANDARD, 15)
    summary = summarize(reconciled.lines, STANDARD, 15)
    assert summary.sum == pytest.approx(reconciled.total_amount, abs=0.01)


def test_summarize_empty():
    summary = summarize([], STANDARD, 15)
    assert summary.count == 0
    assert summary.sum == 0.0


def test_line_amounts_are_rounded_to_cents_before_summing():
    raw = [{"item_code": f"P-{n}", "quantity": 1, "unit_price": 0.335} for n in range(3)]
    reconciled = reconcile(raw, STANDARD, 0)
    assert [line.net_price for line in reconciled.lines] == [0.34, 0.34, 0.34]
    assert [line.unit_price for line in reconciled.lines] == [0.335, 0.335, 0.335]
    assert round_currency(reconciled.subtotal) == 1.02
    assert summarize(reconciled.lines, STANDARD, 0).sum == round_currency(reconciled.total_amount)


def test_transactional_amounts_are_rounded_to_cents():
    reconciled = reconcile(
        [{"description": "Fuel", "ex_vat_amount": 10.005, "line_vat_amount": 1.5004}],
        TRANSACTIONAL,
        15,
    )
    line = reconciled.lines[0]
    assert (line.ex_vat_amount, line.line_vat_amount, line.line_total_amount) == (10.01, 1.5, 11.51)
    assert reconciled.total_amount == pytest.approx(11.51)
