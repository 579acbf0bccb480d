"""Transactional outbox helpers.

``record_events`` is called by repositories inside the same atomic block
as the aggregate write.  ``relay_pending_events`` drains deliverable rows
onto the in-process event bus; it is scheduled with
``transaction.on_commit`` after each write and also runs as the
``core.relay_outbox_events`` Celery task for retries.
"""

from __future__ import annotations

from typing import Iterable, Optional

import structlog
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.domain.bus import IEventBus
from shared.domain.events import DomainEvent, rehydrate

logger = structlog.get_logger(__name__)


def record_events(events: Iterable[DomainEvent]) -> int:
    """Persist *events* as PENDING outbox rows. Returns the number stored."""
    count = 0
    for event in events:
        OutboxEvent.objects.create(
            event_type=event.event_name,
            aggregate_id=str(event.aggregate_id),
            payload=event.to_payload(),
            topic=event.topic,
        )
        count += 1
    if count:
        transaction.on_commit(relay_pending_events, robust=True)
    return count


def relay_pending_events(bus: Optional[IEventBus] = None, limit: int = 100) -> int:
    """Publish deliverable outbox rows in creation order.

    A handler failure marks only that row as FAILED; later rows are still
    relayed.  Returns the number of events published.
    """
    if bus is None:
        from shared.infrastructure.bus import event_bus

        bus = event_bus

    published = 0
    for row in OutboxEvent.objects.deliverable()[:limit]:
        log = logger.bind(
            outbox_id=str(row.id),
            event_type=row.event_type,
            aggregate_id=row.aggregate_id,
        )
        try:
            event = rehydrate(row.event_type, row.payload)
            bus.publish(event)
        except Exception as exc:
            log.warning("outbox.relay_failed", error=str(exc))
            row.mark_as_failed(str(exc))
            continue
        row.mark_as_published()
        published += 1
        log.debug("outbox.relayed")

    if published:
        logger.info("outbox.relay_completed", published=published)
    return published
