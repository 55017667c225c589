"""
Event Bus Port

Architectural Intent:
- Abstract interface for publishing machine lifecycle events
- Decouples the batch coordinator from whoever listens (reports, metrics)
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable
from provisio.domain.events.event_base import DomainEvent


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None: ...
