"""Domain events primitives for the storefront.

Events are immutable dataclasses.  Every concrete event class registers
itself by name so that events stored in the transactional outbox can be
rebuilt (``rehydrate``) before being published on the in-process bus.
Extra fields declared by subclasses must be JSON-native (str, int, bool).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Type
from uuid import UUID, uuid4

_EVENT_REGISTRY: Dict[str, Type["DomainEvent"]] = {}


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable)."""

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    topic: ClassVar[str] = "default"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _EVENT_REGISTRY[cls.__name__] = cls

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-compatible representation used by the outbox."""
        payload: Dict[str, Any] = {}
        for f in fields(self):
            if not f.init:
                continue
            value = getattr(self, f.name)
            if isinstance(value, UUID):
                value = str(value)
            elif isinstance(value, datetime):
                value = value.isoformat()
            payload[f.name] = value
        return payload


def rehydrate(event_name: str, payload: Dict[str, Any]) -> DomainEvent:
    """Rebuild an event previously serialised with ``to_payload``.

    Raises:
        KeyError: no event class is registered under *event_name*.
    """
    event_cls = _EVENT_REGISTRY[event_name]
    data = dict(payload)
    data["aggregate_id"] = UUID(str(data["aggregate_id"]))
    data["event_id"] = UUID(str(data["event_id"]))
    data["occurred_on"] = datetime.fromisoformat(data["occurred_on"])
    return event_cls(**data)


class DomainEventMixin:
    """Mixin for aggregate roots that collect domain events in memory."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def clear_domain_events(self) -> None:
        if hasattr(self, "_domain_events"):
            self._domain_events.clear()

    @property
    def domain_events(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return list(self._domain_events)
