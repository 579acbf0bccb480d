"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.

Writes never save a whole stale instance.  ``merge`` issues an
``UPDATE`` restricted to the intended columns, inserts history rows
instead of rewriting them, and stores domain events in the transactional
outbox, all inside one ``transaction.atomic()`` block.  Database errors
surface as ``PersistenceFailure``; nothing is retried here.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from modules.core.exceptions import PersistenceFailure
from modules.core.outbox import record_events
from modules.orders.dtos import HistoryEntry
from modules.orders.events import ORDER_EVENTS, OrderDeleted
from modules.orders.exceptions import OrderNotFound
from modules.orders.handlers import OrderFeedHandler
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository, OrderFeedCallback
from shared.domain.bus import IEventBus
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(self, bus: Optional[IEventBus] = None) -> None:
        if bus is None:
            from shared.infrastructure.bus import event_bus

            bus = event_bus
        self._bus = bus

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, order: Order, history_entry: HistoryEntry) -> Order:
        log = logger.bind(order_id=str(order.id), customer_id=str(order.customer_id))
        try:
            with transaction.atomic():
                order.save(force_insert=True)
                self._insert_history(order.id, history_entry)
                record_events(order.domain_events)
        except DatabaseError as exc:
            log.error("order.create_failed", error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

        order.clear_domain_events()
        log.info(
            "order.created", order_number=order.order_number, total=str(order.total)
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _queryset(self):
        return Order.objects.select_related("customer", "seller").prefetch_related(
            "status_history"
        )

    def get_by_id(self, id: Any) -> Optional[Order]:
        """Returns ``None`` for non-existent or invalid IDs."""
        try:
            return self._queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None
        except DatabaseError as exc:
            logger.error("order.read_failed", order_id=str(id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional Django ORM look-ups, e.g.
        ``{"seller_id": ...}``."""
        queryset = self._queryset()
        if filters:
            queryset = queryset.filter(**filters)
        try:
            return list(queryset)
        except DatabaseError as exc:
            logger.error("order.list_failed", error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

    def get_history(self, order_id: Any) -> List[OrderStatusHistory]:
        return list(OrderStatusHistory.objects.filter(order_id=order_id))

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(
        self,
        id: Any,
        changes: Dict[str, Any],
        history_entry: Optional[HistoryEntry] = None,
        events: Sequence[DomainEvent] = (),
    ) -> Order:
        log = logger.bind(order_id=str(id), fields=sorted(changes))
        try:
            with transaction.atomic():
                updated = Order.objects.filter(pk=id).update(
                    **changes, updated_at=timezone.now()
                )
                if not updated:
                    raise OrderNotFound(f"Order {id} not found.")
                if history_entry is not None:
                    self._insert_history(id, history_entry)
                record_events(events)
        except DatabaseError as exc:
            log.error("order.merge_failed", error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

        log.info("order.merged", history_appended=history_entry is not None)
        return self._queryset().get(pk=id)

    def _insert_history(self, order_id: Any, entry: HistoryEntry) -> None:
        OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=entry.old_status,
            new_status=entry.status,
            timestamp=entry.timestamp,
            actor_id=entry.actor_id,
            notes=entry.notes,
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, id: Any) -> bool:
        try:
            with transaction.atomic():
                deleted, _ = Order.objects.filter(pk=id).delete()
                if deleted:
                    record_events([OrderDeleted(aggregate_id=id)])
        except (ValueError, ValidationError):
            return False
        except DatabaseError as exc:
            logger.error("order.delete_failed", order_id=str(id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc

        if deleted:
            logger.info("order.deleted", order_id=str(id))
        return bool(deleted)

    # ------------------------------------------------------------------
    # Live feed
    # ------------------------------------------------------------------

    def subscribe(self, callback: OrderFeedCallback) -> Callable[[], None]:
        handler = OrderFeedHandler(self, callback)
        for event_class in ORDER_EVENTS:
            self._bus.subscribe(event_class, handler)
        callback(self.list())

        def unsubscribe() -> None:
            for event_class in ORDER_EVENTS:
                self._bus.unsubscribe(event_class, handler)

        return unsubscribe
