"""Order domain exceptions.

Raised by the calculator, the state machine and the Service Layer when
business rules are violated.  The API layer (Views) catches these and
translates them into appropriate HTTP responses.

``PersistenceFailure`` is shared with the customer store and lives in
``modules.core.exceptions``.
"""

from __future__ import annotations

from decimal import Decimal


class OrderNotFound(Exception):
    """The requested order does not exist."""


class EmptyCart(Exception):
    """Checkout was attempted with no items."""


class BelowMinimumOrder(Exception):
    """The cart subtotal is below the shop's minimum order value."""

    def __init__(self, subtotal: Decimal, minimum: Decimal) -> None:
        super().__init__(
            f"Order subtotal {subtotal} is below the minimum of {minimum}."
        )
        self.subtotal = subtotal
        self.minimum = minimum


class InvalidTransition(Exception):
    """An illegal status change was requested.

    Callers must not retry with the same target.
    """

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition order from '{current}' to '{target}'.")
        self.current = current
        self.target = target


class OrderAccessDenied(Exception):
    """The acting user is not allowed to perform the action on this order."""


class OrderLocked(Exception):
    """The field cannot be edited while the order is in its current status."""


class LineItemNotFound(Exception):
    """The order has no line item for the given product."""
