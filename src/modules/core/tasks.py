"""Tasks assíncronas do módulo core."""

import structlog
from celery import shared_task

from modules.core.outbox import relay_pending_events

logger = structlog.get_logger(__name__)


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(limit: int = 100) -> dict:
    """Reenvia eventos pendentes/falhos do outbox para o barramento."""
    published = relay_pending_events(limit=limit)
    logger.info("relay_outbox_events.executed", published=published)
    return {"status": "ok", "published": published}
