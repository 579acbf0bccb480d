"""Order repository interface.

Extends ``IRepository[Order]`` with the order-store contract: creation,
field-level merge with an additive history append, hard delete and a
live subscription to the full order set.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import HistoryEntry
    from modules.orders.models import Order, OrderStatusHistory
    from shared.domain.events import DomainEvent

OrderFeedCallback = Callable[[List["Order"]], None]


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    Every write either fully happens or raises ``PersistenceFailure``.
    """

    @abstractmethod
    def create(self, order: Order, history_entry: HistoryEntry) -> Order:
        """Insert a new order with its first history entry and the domain
        events collected on it."""

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[Order]:
        """Retrieve an order with its status history, or ``None``."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders, newest first."""

    @abstractmethod
    def merge(
        self,
        id: Any,
        changes: Dict[str, Any],
        history_entry: Optional[HistoryEntry] = None,
        events: Sequence[DomainEvent] = (),
    ) -> Order:
        """Write only the fields in *changes*, append *history_entry* (never
        overwriting existing entries) and return the fresh order.

        Raises ``OrderNotFound`` when the order no longer exists.
        """

    @abstractmethod
    def get_history(self, order_id: Any) -> List[OrderStatusHistory]:
        """History entries in the order they were appended."""

    @abstractmethod
    def delete(self, id: Any) -> bool:
        """Hard-delete an order; ``False`` when it did not exist."""

    @abstractmethod
    def subscribe(self, callback: OrderFeedCallback) -> Callable[[], None]:
        """Call *callback* with the full order set now and after every
        committed change.  Returns the function that cancels it."""
