"""Role checks applied by the calling layer before the state machine.

- Only staff (admin, or the vendor attributed as the order's seller) may
  change an order's status or edit its fields.
- A vendor may act only on orders where they are the attributed seller.
- Only an admin may confirm payment (``pagamento_pendente -> preparacao``)
  or delete an order.
- Customers may read their own orders.
"""

from __future__ import annotations

from typing import Any

from modules.customers.dtos import SessionContext
from modules.orders.constants import ADMIN_ONLY_TRANSITIONS
from modules.orders.exceptions import OrderAccessDenied


def is_attributed_seller(session: SessionContext, order: Any) -> bool:
    return order.seller_id is not None and order.seller_id == session.customer_id


def can_manage(session: SessionContext, order: Any) -> bool:
    if session.is_admin:
        return True
    return session.is_vendor and is_attributed_seller(session, order)


def can_view(session: SessionContext, order: Any) -> bool:
    return can_manage(session, order) or order.customer_id == session.customer_id


def ensure_can_view(session: SessionContext, order: Any) -> None:
    if not can_view(session, order):
        raise OrderAccessDenied("You cannot access this order.")


def ensure_can_edit(session: SessionContext, order: Any) -> None:
    if not can_manage(session, order):
        raise OrderAccessDenied("Only the admin or the order's seller can edit it.")


def ensure_can_transition(session: SessionContext, order: Any, target: str) -> None:
    ensure_can_edit(session, order)
    if (order.status, target) in ADMIN_ONLY_TRANSITIONS and not session.is_admin:
        raise OrderAccessDenied("Only an admin can confirm payment.")


def ensure_can_delete(session: SessionContext) -> None:
    if not session.is_admin:
        raise OrderAccessDenied("Only an admin can delete orders.")
