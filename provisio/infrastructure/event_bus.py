"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus implementation for publishing machine lifecycle events
- Supports async subscription handlers
- A failing handler is logged and skipped; it never fails the provisioning
  run or starves the other handlers
"""

import logging
from typing import Callable, Awaitable
from provisio.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            for event_type, handlers in list(self._handlers.items()):
                if not isinstance(event, event_type):
                    continue
                for handler in list(handlers):
                    try:
                        await handler(event)
                    except Exception:
                        logger.exception(
                            "Event handler %r failed for %s",
                            handler,
                            event.event_type,
                        )

    def subscribe(self, event_type: type, handler: Handler) -> None:
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
