"""Customer domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class CustomerAlreadyExists(Exception):
    """The user already owns a customer profile."""


class CustomerNotFound(Exception):
    """The requested customer does not exist or has been soft-deleted."""


class CartItemNotFound(Exception):
    """The cart has no entry for the given product."""
