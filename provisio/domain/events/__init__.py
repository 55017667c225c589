"""
Domain Events Package

Architectural Intent:
- Contains domain events capturing machine lifecycle changes
- Events are immutable and dispatched via the event bus
"""

from provisio.domain.events.event_base import DomainEvent
from provisio.domain.events.machine_events import (
    MachineEvent,
    MachineAllocated,
    MachineReady,
    MachineStopped,
    MachineDeleted,
    MachineFailed,
)

__all__ = [
    "DomainEvent",
    "MachineEvent",
    "MachineAllocated",
    "MachineReady",
    "MachineStopped",
    "MachineDeleted",
    "MachineFailed",
]
