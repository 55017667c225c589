"""
Batch DTOs

Architectural Intent:
- Data Transfer Objects reporting the outcome of a batch run
- One MachineOutcome per machine, success or failure, so callers can decide
  whether partial failure is acceptable
"""

from dataclasses import dataclass, field
from typing import Optional

from provisio.domain.entities.machine_batch import BatchAction
from provisio.domain.entities.provisioning_state import MachineState
from provisio.domain.errors import PersistenceFailed
from provisio.domain.ports.machine_port import Machine


@dataclass(frozen=True)
class MachineOutcome:
    name: str
    state: MachineState
    error: Optional[BaseException] = None
    machine: Optional[Machine] = None
    history: tuple[MachineState, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is not MachineState.FAILED

    @property
    def persistence_failed(self) -> bool:
        return isinstance(self.error, PersistenceFailed)


@dataclass(frozen=True)
class BatchResult:
    batch: str
    action: BatchAction
    outcomes: dict[str, MachineOutcome] = field(default_factory=dict)

    def __getitem__(self, name: str) -> MachineOutcome:
        return self.outcomes[name]

    def __contains__(self, name: object) -> bool:
        return name in self.outcomes

    def __len__(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> list[MachineOutcome]:
        return [o for o in self.outcomes.values() if o.succeeded]

    @property
    def failed(self) -> list[MachineOutcome]:
        return [o for o in self.outcomes.values() if not o.succeeded]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.succeeded

    def summary(self) -> dict[str, str]:
        """Machine name -> terminal state, with the error for failures."""
        return {
            name: (
                f"{o.state.value}: {o.error}" if o.error is not None else o.state.value
            )
            for name, o in self.outcomes.items()
        }
