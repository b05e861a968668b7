"""In-process event bus used to announce configuration lifecycle events.

What:
  Provide the ``publish`` capability the configuration core needs after a
  successful save, plus subscription so the GUI/API layer and tests can
  observe what happened.

Why:
  The persistence gateway must not know who listens. Delivery is
  fire-and-forget: a failing subscriber is logged and the remaining
  subscribers still receive the event, and the publisher never sees the
  error.

How:
  :class:`EventBus` keeps a list of ``(callback, types)`` pairs and numbers
  events with a monotonically increasing id. ``default_bus`` is the shared
  instance used when callers do not inject one.

Interfaces:
  :class:`EventType`, :class:`Event`, :class:`EventBus`, ``default_bus``.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, FrozenSet, List, Optional, Protocol, Tuple

from .utils.logging import JsonLogger, get_logger


class EventType(str, Enum):
    CONFIG_SAVED = "ConfigSaved"


@dataclass(frozen=True)
class Event:
    id: int
    type: EventType
    data: Any
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[Event], None]


class Publisher(Protocol):
    def publish(self, event_type: EventType, data: Any) -> Event: ...


class EventBus:
    """Synchronous fan-out of events to registered callbacks."""

    def __init__(self, *, logger: Optional[JsonLogger] = None):
        self._subscribers: List[Tuple[Subscriber, Optional[FrozenSet[EventType]]]] = []
        self._ids = itertools.count(1)
        self._logger = logger or get_logger("events")

    def subscribe(self, callback: Subscriber, *types: EventType) -> Callable[[], None]:
        """Register ``callback`` for ``types`` (all types when none given).

        Returns:
          A function that removes the subscription again.
        """

        entry = (callback, frozenset(types) if types else None)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event_type: EventType, data: Any) -> Event:
        event = Event(id=next(self._ids), type=event_type, data=data)
        for callback, types in list(self._subscribers):
            if types is not None and event_type not in types:
                continue
            try:
                callback(event)
            except Exception as exc:
                self._logger.error(
                    "Event subscriber failed",
                    event=event_type.value,
                    event_id=event.id,
                    error=repr(exc),
                )
        return event


default_bus = EventBus()
