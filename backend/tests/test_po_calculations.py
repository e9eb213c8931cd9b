"""
Purchase order arithmetic: line totals, order totals and payment status.
"""

import pytest

from bizzflow.services.po_calculations import (
    LineInput,
    compute_totals,
    derive_payment_status,
    line_total,
    remaining_balance,
    sum_payments,
)


def test_line_total_is_quantity_times_unit_price():
    assert line_total(10, 5) == 50
    assert line_total(3, 0) == 0


def test_compute_totals_sums_lines_then_applies_tax_and_discount():
    items = [
        LineInput(description="Widget", quantity=10, unit_price_cents=5),
        LineInput(description="Gadget", quantity=2, unit_price_cents=1250, unit="box"),
    ]
    totals = compute_totals(items, tax_cents=325, discount_cents=100)

    assert totals.line_totals == (50, 2500)
    assert totals.subtotal_cents == 2550
    assert totals.tax_cents == 325
    assert totals.discount_cents == 100
    assert totals.total_cents == 2550 + 325 - 100


def test_compute_totals_defaults_to_no_tax_or_discount():
    totals = compute_totals([LineInput(description="Widget", quantity=10, unit_price_cents=5)])
    assert totals.subtotal_cents == 50
    assert totals.total_cents == 50


@pytest.mark.parametrize(
    "paid,total,expected",
    [
        (0, 5000, "unpaid"),
        (1, 5000, "partially-paid"),
        (4999, 5000, "partially-paid"),
        (5000, 5000, "paid"),
        (0, 0, "unpaid"),
    ],
)
def test_derive_payment_status(paid, total, expected):
    assert derive_payment_status(paid, total) == expected


def test_remaining_balance_never_negative():
    assert remaining_balance(5000, 1200) == 3800
    assert remaining_balance(5000, 5000) == 0
    assert remaining_balance(5000, 6000) == 0


def test_sum_payments():
    assert sum_payments([]) == 0
    assert sum_payments(a for a in (100, 250, 650)) == 1000
