"""
Execution Context Module

Architectural Intent:
- Scopes which driver, which machine options and which batch apply to
  machines declared inside a dynamic region of work
- Three independent bindings; scopes nest arbitrarily and always restore
  the outer value on exit, including when the inner work raises

Design Decisions:
- Bindings are ContextVars, so each asyncio task sees its own copy and
  concurrent batches never share state
- Scoped work captures the bindings at declaration time (capture()) rather
  than re-reading them later, since the scope may have exited by then
"""

from __future__ import annotations
import contextlib
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from provisio.domain.entities.machine_batch import BatchAction, MachineBatch
from provisio.domain.ports.driver_port import Driver

_current_driver: ContextVar[Optional[Driver]] = ContextVar(
    "provisio_current_driver", default=None
)
_current_machine_options: ContextVar[Optional[dict[str, Any]]] = ContextVar(
    "provisio_current_machine_options", default=None
)
_current_machine_batch: ContextVar[Optional[MachineBatch]] = ContextVar(
    "provisio_current_machine_batch", default=None
)


def current_driver() -> Optional[Driver]:
    return _current_driver.get()


def current_machine_options() -> Optional[dict[str, Any]]:
    return _current_machine_options.get()


def current_machine_batch() -> Optional[MachineBatch]:
    return _current_machine_batch.get()


@contextlib.contextmanager
def with_driver(driver: Optional[Driver]) -> Iterator[Optional[Driver]]:
    token = _current_driver.set(driver)
    try:
        yield driver
    finally:
        _current_driver.reset(token)


@contextlib.contextmanager
def with_machine_options(
    machine_options: Optional[dict[str, Any]],
) -> Iterator[Optional[dict[str, Any]]]:
    token = _current_machine_options.set(machine_options)
    try:
        yield machine_options
    finally:
        _current_machine_options.reset(token)


@contextlib.contextmanager
def with_machine_batch(
    machine_batch: MachineBatch | str | None,
    action: Optional[BatchAction | str] = None,
    max_simultaneous: Optional[int] = None,
) -> Iterator[Optional[MachineBatch]]:
    """
    Makes `machine_batch` the batch new machines enrol into.

    A string creates a fresh batch of that name, applying `action` and
    `max_simultaneous` when given.
    """
    if isinstance(machine_batch, str):
        machine_batch = MachineBatch(
            machine_batch,
            action=action or BatchAction.CONVERGE,
            max_simultaneous=max_simultaneous,
        )
    token = _current_machine_batch.set(machine_batch)
    try:
        yield machine_batch
    finally:
        _current_machine_batch.reset(token)


@dataclass(frozen=True)
class ExecutionContext:
    """Snapshot of the three bindings at one point in time."""
    driver: Optional[Driver] = None
    machine_options: Optional[dict[str, Any]] = None
    machine_batch: Optional[MachineBatch] = None

    @classmethod
    def capture(cls) -> "ExecutionContext":
        return cls(
            driver=current_driver(),
            machine_options=current_machine_options(),
            machine_batch=current_machine_batch(),
        )

    @contextlib.contextmanager
    def applied(self) -> Iterator["ExecutionContext"]:
        """Re-enters this snapshot, e.g. inside a worker task."""
        with with_driver(self.driver), with_machine_options(
            self.machine_options
        ), with_machine_batch(self.machine_batch):
            yield self
