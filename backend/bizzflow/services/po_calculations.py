# Overview: Pure functions for purchase order totals and payment status.

"""
Purchase order arithmetic.

These functions hold no state and never touch the session. The lifecycle
service calls them before every write, so derived fields are always
recomputed from current items, tax, discount and the payment ledger:

    line_total     = quantity * unit_price
    subtotal       = sum(line_total)
    total          = subtotal + tax - discount
    payment_status = paid            if paid == total
                     partially-paid  if 0 < paid < total
                     unpaid          otherwise
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models.purchasing import (
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_UNPAID,
)


@dataclass(frozen=True)
class LineInput:
    """Validated line item as accepted from a client."""
    description: str
    quantity: int
    unit_price_cents: int
    unit: str = "piece"


@dataclass(frozen=True)
class OrderTotals:
    line_totals: tuple[int, ...]
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def line_total(quantity: int, unit_price_cents: int) -> int:
    return quantity * unit_price_cents


def compute_totals(items: Iterable[LineInput], tax_cents: int = 0, discount_cents: int = 0) -> OrderTotals:
    line_totals = tuple(line_total(item.quantity, item.unit_price_cents) for item in items)
    subtotal = sum(line_totals)
    return OrderTotals(
        line_totals=line_totals,
        subtotal_cents=subtotal,
        tax_cents=tax_cents,
        discount_cents=discount_cents,
        total_cents=subtotal + tax_cents - discount_cents,
    )


def derive_payment_status(paid_cents: int, total_cents: int) -> str:
    if paid_cents > 0 and paid_cents == total_cents:
        return PAYMENT_STATUS_PAID
    if 0 < paid_cents < total_cents:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def remaining_balance(total_cents: int, paid_cents: int) -> int:
    return max(total_cents - paid_cents, 0)


def sum_payments(amounts: Iterable[int]) -> int:
    return sum(amounts)
