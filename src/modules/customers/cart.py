"""Pure cart operations.

Carts are immutable sequences of ``CartItem``; every helper returns a new
list.  A quantity never reaches 0 while the entry is present: removal
deletes the entry instead.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List
from uuid import UUID

from modules.customers.dtos import CartItem


def add_to_cart(cart: Iterable[CartItem], item: CartItem) -> List[CartItem]:
    """Add *item*, merging quantity into an existing entry for the same product.

    A non-empty note on the incoming item replaces the stored one.
    """
    result: List[CartItem] = []
    merged = False
    for existing in cart:
        if existing.product_id == item.product_id and not merged:
            existing = existing.model_copy(
                update={
                    "quantity": existing.quantity + item.quantity,
                    "note": item.note or existing.note,
                }
            )
            merged = True
        result.append(existing)
    if not merged:
        result.append(item)
    return result


def remove_from_cart(cart: Iterable[CartItem], product_id: UUID) -> List[CartItem]:
    return [item for item in cart if item.product_id != product_id]


def change_cart_quantity(
    cart: Iterable[CartItem], product_id: UUID, delta: int
) -> List[CartItem]:
    """Shift the quantity of one entry by *delta*.

    A change that would bring the quantity below 1 is ignored.
    """
    result: List[CartItem] = []
    for item in cart:
        if item.product_id == product_id:
            new_quantity = item.quantity + delta
            if new_quantity >= 1:
                item = item.model_copy(update={"quantity": new_quantity})
        result.append(item)
    return result


def cart_subtotal(cart: Iterable[CartItem]) -> Decimal:
    """Display subtotal from the prices captured when items were added."""
    return sum((item.unit_price * item.quantity for item in cart), start=Decimal("0"))
