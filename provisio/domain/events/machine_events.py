"""
Machine Lifecycle Events

Published by the batch coordinator after each persisted state change.
"""

from dataclasses import dataclass
from typing import Optional

from provisio.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class MachineEvent(DomainEvent):
    batch: str = ""
    driver_url: Optional[str] = None

    @property
    def machine(self) -> str:
        return self.aggregate_id


@dataclass(frozen=True)
class MachineAllocated(MachineEvent):
    pass


@dataclass(frozen=True)
class MachineReady(MachineEvent):
    pass


@dataclass(frozen=True)
class MachineStopped(MachineEvent):
    pass


@dataclass(frozen=True)
class MachineDeleted(MachineEvent):
    pass


@dataclass(frozen=True)
class MachineFailed(MachineEvent):
    phase: str = ""
    error_type: str = ""
    error_message: str = ""
