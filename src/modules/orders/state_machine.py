"""Order status state machine.

Pure: validates a requested transition against ``VALID_TRANSITIONS`` and
describes its effect without touching the order it was given.  The
coordinator merges the returned ``changes`` into the stored order and
appends ``entry`` to its history.  Role checks live in
``modules.orders.permissions``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from modules.orders.constants import VALID_TRANSITIONS, OrderStatus
from modules.orders.dtos import HistoryEntry
from modules.orders.exceptions import InvalidTransition


@dataclass(frozen=True)
class Transition:
    changes: Dict[str, Any]
    entry: HistoryEntry


def allowed_targets(current: str) -> set[str]:
    return set(VALID_TRANSITIONS.get(current, set()))


def can_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def validate_transition(current: str, target: str) -> None:
    """Raises ``InvalidTransition`` naming *current* and *target*."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def apply_transition(
    order: Any,
    target: str,
    now: datetime,
    actor_id: Optional[UUID] = None,
    notes: str = "",
) -> Transition:
    """Describe the valid transition of *order* into *target*.

    ``delivered_at`` is set only on entering ``entregue`` and only when it
    was never set before.

    Raises:
        InvalidTransition: the move is not allowed; nothing is produced.
    """
    current = order.status
    validate_transition(current, target)

    changes: Dict[str, Any] = {"status": target}
    if target == OrderStatus.DELIVERED and order.delivered_at is None:
        changes["delivered_at"] = now

    entry = HistoryEntry(
        status=target,
        timestamp=now,
        old_status=current,
        actor_id=actor_id,
        notes=notes,
    )
    return Transition(changes=changes, entry=entry)
