from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from provisio.domain.entities.machine_spec import MachineSpec

if TYPE_CHECKING:
    from provisio.domain.ports.driver_port import Driver


@dataclass(frozen=True)
class MachineDeclaration:
    """
    A machine as declared: its spec plus the driver and options that were in
    scope at the moment of declaration.
    """
    machine_spec: MachineSpec
    driver: Driver
    machine_options: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.machine_spec.name
