"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderEvent(DomainEvent):
    topic: ClassVar[str] = "orders"


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    """Raised when checkout persists a new order."""


@dataclass(frozen=True)
class OrderUpdated(OrderEvent):
    """Raised when order fields are edited."""

    changed_fields: str = ""


@dataclass(frozen=True)
class OrderStatusChanged(OrderEvent):
    """Raised when an order status changes."""

    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderDeleted(OrderEvent):
    """Raised when an admin deletes an order."""


ORDER_EVENTS = (OrderCreated, OrderUpdated, OrderStatusChanged, OrderDeleted)
