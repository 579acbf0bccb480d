"""Event handlers for Orders domain events."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from modules.orders.events import OrderEvent
from shared.domain.bus import IEventHandler

if TYPE_CHECKING:
    from modules.orders.repositories.interfaces import (
        IOrderRepository,
        OrderFeedCallback,
    )

logger = structlog.get_logger(__name__)


class OrderEventLogHandler(IEventHandler[OrderEvent]):
    def handle(self, event: OrderEvent) -> None:
        logger.info(
            "order.event_relayed",
            event_type=event.event_name,
            order_id=str(event.aggregate_id),
        )


class OrderFeedHandler(IEventHandler[OrderEvent]):
    """Pushes the full, freshly read order set to one live-feed subscriber."""

    def __init__(
        self, repository: IOrderRepository, callback: OrderFeedCallback
    ) -> None:
        self._repository = repository
        self._callback = callback

    def handle(self, event: OrderEvent) -> None:
        self._callback(self._repository.list())


order_event_log_handler = OrderEventLogHandler()
