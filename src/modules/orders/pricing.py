"""Order money calculator.

Pure functions: no I/O, no hidden state, identical inputs always give
identical outputs, so ``total`` can be recomputed after any partial edit.
All amounts are ``Decimal``; negative inputs are clamped to zero and the
fees and the total are rounded half-up to cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from modules.orders.constants import INSURANCE_FEE_RATE, INVOICE_FEE_RATE
from modules.orders.dtos import OrderTotals

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def _money(value: Any) -> Decimal:
    amount = value if isinstance(value, Decimal) else Decimal(str(value or 0))
    return max(ZERO, amount)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_subtotal(items: Iterable[Any]) -> Decimal:
    """Sum of ``unit_price * quantity``; accepts line items or plain dicts."""
    subtotal = ZERO
    for item in items:
        if isinstance(item, dict):
            price, quantity = item.get("unit_price"), item.get("quantity", 0)
        else:
            price, quantity = item.unit_price, item.quantity
        subtotal += _money(price) * max(0, int(quantity))
    return _cents(subtotal)


def compute_totals(
    items: Iterable[Any],
    discount: Any = ZERO,
    shipping_cost: Any = ZERO,
    wants_invoice: bool = False,
    wants_insurance: bool = False,
) -> OrderTotals:
    subtotal = compute_subtotal(items)
    invoice_fee = _cents(subtotal * INVOICE_FEE_RATE) if wants_invoice else ZERO
    insurance_fee = _cents(subtotal * INSURANCE_FEE_RATE) if wants_insurance else ZERO
    total = subtotal - _money(discount) + _money(shipping_cost)
    total += invoice_fee + insurance_fee
    return OrderTotals(
        subtotal=subtotal,
        invoice_fee=_cents(invoice_fee),
        insurance_fee=_cents(insurance_fee),
        total=_cents(max(ZERO, total)),
    )


def compute_total(
    items: Iterable[Any],
    discount: Any = ZERO,
    shipping_cost: Any = ZERO,
    wants_invoice: bool = False,
    wants_insurance: bool = False,
) -> Decimal:
    """``max(0, subtotal - discount + shipping + invoice fee + insurance fee)``."""
    return compute_totals(
        items, discount, shipping_cost, wants_invoice, wants_insurance
    ).total
