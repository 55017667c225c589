"""
Machine Batch Module

Architectural Intent:
- A named, mutable group of machine declarations processed together
- Carries the action to apply and the bound on simultaneous provider calls
- Declarations accumulate while the batch is the current one in the
  execution context; enrolment is a side effect of declaring a machine
"""

from __future__ import annotations
from enum import Enum
from typing import Iterator, Optional

from provisio.domain.entities.machine_declaration import MachineDeclaration


class BatchAction(Enum):
    ALLOCATE = "allocate"
    READY = "ready"
    CONVERGE = "converge"
    STOP = "stop"
    DESTROY = "destroy"

    @staticmethod
    def parse(value: "BatchAction | str") -> "BatchAction":
        if isinstance(value, BatchAction):
            return value
        try:
            return BatchAction(value.lower())
        except ValueError:
            raise ValueError(
                f"Unknown batch action {value!r}; expected one of "
                f"{', '.join(a.value for a in BatchAction)}"
            ) from None


class MachineBatch:
    """Named group of machines sharing one action and concurrency bound."""

    def __init__(
        self,
        name: str,
        action: BatchAction | str = BatchAction.CONVERGE,
        max_simultaneous: Optional[int] = None,
    ) -> None:
        if not name:
            raise ValueError("Batch name cannot be empty")
        if max_simultaneous is not None and max_simultaneous < 1:
            raise ValueError(
                f"max_simultaneous must be at least 1, got {max_simultaneous}"
            )
        self.name = name
        self.action = BatchAction.parse(action)
        self.max_simultaneous = max_simultaneous
        self._declarations: dict[str, MachineDeclaration] = {}

    def add(self, declaration: MachineDeclaration) -> None:
        """Enrol a machine. Re-declaring a name replaces the earlier entry."""
        self._declarations[declaration.name] = declaration

    def remove(self, name: str) -> None:
        self._declarations.pop(name, None)

    @property
    def declarations(self) -> list[MachineDeclaration]:
        return list(self._declarations.values())

    @property
    def names(self) -> list[str]:
        return list(self._declarations)

    def __contains__(self, name: object) -> bool:
        return name in self._declarations

    def __iter__(self) -> Iterator[MachineDeclaration]:
        return iter(self.declarations)

    def __len__(self) -> int:
        return len(self._declarations)

    def __repr__(self) -> str:
        return (
            f"MachineBatch(name={self.name!r}, action={self.action.value}, "
            f"machines={self.names})"
        )
