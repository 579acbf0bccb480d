"""Read-only projections over an in-memory order set.

Used by the staff listing and the live feed.  All functions are pure and
take any objects exposing the ``Order`` attributes they read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Iterable, List, Optional

from modules.customers.dtos import SessionContext
from modules.orders.constants import ACTIVE_STATES, OrderStatus

STATUS_ALL = "all"
STATUS_ACTIVE = "active"


@dataclass
class DateGroups:
    today: List[Any] = field(default_factory=list)
    yesterday: List[Any] = field(default_factory=list)
    older: List[Any] = field(default_factory=list)


def filter_by_status(orders: Iterable[Any], status: str = STATUS_ALL) -> List[Any]:
    """``all`` hides cancelled orders, ``active`` keeps the sales-console
    states, any other value is an exact status match."""
    status = status or STATUS_ALL
    if status == STATUS_ALL:
        return [o for o in orders if o.status != OrderStatus.CANCELLED]
    if status == STATUS_ACTIVE:
        return [o for o in orders if o.status in ACTIVE_STATES]
    return [o for o in orders if o.status == status]


def scope_to_viewer(orders: Iterable[Any], session: SessionContext) -> List[Any]:
    """Admins see everything, vendors their attributed orders, customers
    their own orders."""
    if session.is_admin:
        return list(orders)
    if session.is_vendor:
        return [o for o in orders if o.seller_id == session.customer_id]
    return [o for o in orders if o.customer_id == session.customer_id]


def matches(order: Any, term: str) -> bool:
    term = term.strip().lower()
    if not term:
        return True
    haystacks = [
        order.customer_name,
        order.customer_phone,
        order.city,
        str(order.id),
        getattr(order, "order_number", ""),
    ]
    haystacks.extend(item.get("name", "") for item in order.items or [])
    return any(term in (value or "").lower() for value in haystacks)


def search(orders: Iterable[Any], term: Optional[str]) -> List[Any]:
    """Case-insensitive substring match OR-combined across customer name,
    phone, city, item names, id and order number."""
    if not term or not term.strip():
        return list(orders)
    return [o for o in orders if matches(o, term)]


def group_by_date(orders: Iterable[Any], now: datetime, tz: tzinfo) -> DateGroups:
    """Bucket by calendar day of ``created_at`` in the viewer's time zone."""
    today = now.astimezone(tz).date()
    yesterday = today - timedelta(days=1)
    groups = DateGroups()
    for order in orders:
        day = order.created_at.astimezone(tz).date()
        if day == today:
            groups.today.append(order)
        elif day == yesterday:
            groups.yesterday.append(order)
        else:
            groups.older.append(order)
    return groups


def project(
    orders: Iterable[Any],
    session: SessionContext,
    status: str = STATUS_ALL,
    term: Optional[str] = None,
) -> List[Any]:
    return search(filter_by_status(scope_to_viewer(orders, session), status), term)
