"""
Provisioning State Module

Architectural Intent:
- Per-machine lifecycle state within a batch
- Legal transitions enforced by the MachineProgress tracker so the
  coordinator can't skip a step (e.g. ready before allocate was persisted)

Happy path: DECLARED -> ALLOCATING -> ALLOCATED -> READYING -> READY
FAILED is reachable from every in-flight state.
"""

from __future__ import annotations
from datetime import datetime, UTC
from enum import Enum
from typing import Optional

from provisio.domain.errors import InvalidTransition


class MachineState(Enum):
    DECLARED = "declared"
    ALLOCATING = "allocating"
    ALLOCATED = "allocated"
    READYING = "readying"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {MachineState.READY, MachineState.STOPPED, MachineState.DELETED, MachineState.FAILED}
)

_TRANSITIONS: dict[MachineState, frozenset[MachineState]] = {
    MachineState.DECLARED: frozenset(
        {
            MachineState.ALLOCATING,
            MachineState.READYING,
            MachineState.STOPPING,
            MachineState.DELETING,
            MachineState.FAILED,
        }
    ),
    MachineState.ALLOCATING: frozenset({MachineState.ALLOCATED, MachineState.FAILED}),
    MachineState.ALLOCATED: frozenset({MachineState.READYING, MachineState.FAILED}),
    MachineState.READYING: frozenset({MachineState.READY, MachineState.FAILED}),
    MachineState.STOPPING: frozenset({MachineState.STOPPED, MachineState.FAILED}),
    MachineState.DELETING: frozenset({MachineState.DELETED, MachineState.FAILED}),
}


class MachineProgress:
    """Tracks one machine's state and the history of its transitions."""

    __slots__ = ("_name", "_state", "_history", "_error")

    def __init__(self, name: str) -> None:
        self._name = name
        self._state = MachineState.DECLARED
        self._history: list[tuple[MachineState, str]] = [
            (MachineState.DECLARED, datetime.now(UTC).isoformat())
        ]
        self._error: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> MachineState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def history(self) -> tuple[MachineState, ...]:
        return tuple(state for state, _ in self._history)

    def advance(self, new_state: MachineState) -> None:
        if new_state is MachineState.FAILED:
            raise InvalidTransition("Use fail() to record a failure", self._name)
        self._move(new_state)

    def fail(self, error: BaseException) -> None:
        self._move(MachineState.FAILED)
        self._error = error

    def _move(self, new_state: MachineState) -> None:
        allowed = _TRANSITIONS.get(self._state, frozenset())
        if new_state not in allowed:
            raise InvalidTransition(
                f"Machine {self._name!r} cannot move from "
                f"{self._state.value} to {new_state.value}",
                self._name,
            )
        self._state = new_state
        self._history.append((new_state, datetime.now(UTC).isoformat()))

    def __repr__(self) -> str:
        return f"MachineProgress(name={self._name!r}, state={self._state.value})"
