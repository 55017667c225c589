"""
Provisioning Errors

Architectural Intent:
- Single taxonomy for every failure the provisioning core can surface
- Each error carries the structured context needed to report it per machine
- `retryable` tells callers whether re-invoking the same operation can help

Design Decisions:
- Discovery-time errors (UnknownDriver, DriverLoadError) abort an operation
  before any machine work starts; everything else is captured per machine
- PersistenceFailed is deliberately distinct from provider failures: the
  provider resource exists but is unrecorded
"""

from __future__ import annotations
from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""

    retryable: bool = False

    def __init__(self, message: str, machine: Optional[str] = None) -> None:
        super().__init__(message)
        self.machine = machine


class UnknownDriver(ProvisioningError):
    """No constructor is registered or discoverable for a driver scheme."""

    def __init__(self, scheme: str, driver_url: Optional[str] = None) -> None:
        super().__init__(f"No driver registered for scheme {scheme!r}")
        self.scheme = scheme
        self.driver_url = driver_url


class DriverLoadError(ProvisioningError):
    """A driver implementation was found but could not be loaded."""

    def __init__(
        self,
        scheme: str,
        driver_url: Optional[str] = None,
        machine: Optional[str] = None,
    ) -> None:
        detail = f" (declared driver_url {driver_url!r})" if driver_url else ""
        super().__init__(
            f"Could not load driver for scheme {scheme!r}{detail}", machine
        )
        self.scheme = scheme
        self.driver_url = driver_url


class Unprovisioned(ProvisioningError):
    """The machine has no driver URL, so there is nothing to connect to."""

    def __init__(self, machine: str) -> None:
        super().__init__(f"Machine {machine!r} was not provisioned", machine)


class NotFound(ProvisioningError):
    """A stored record or provider resource no longer exists."""

    def __init__(self, message: str, machine: Optional[str] = None) -> None:
        super().__init__(message, machine)


class NotReady(ProvisioningError):
    """The readiness wait exceeded its bound."""

    retryable = True

    def __init__(
        self, message: str, machine: Optional[str] = None, waited_seconds: float = 0.0
    ) -> None:
        super().__init__(message, machine)
        self.waited_seconds = waited_seconds


class ProvisionFailed(ProvisioningError):
    """The provider reported a terminal failure for the resource."""


class PersistenceFailed(ProvisioningError):
    """A spec mutation could not be saved after a successful provider call."""

    def __init__(self, machine: str, phase: str) -> None:
        super().__init__(
            f"Machine {machine!r} changed during {phase} but could not be saved; "
            "the provider resource may exist without a record",
            machine,
        )
        self.phase = phase


class DriverMismatch(ProvisioningError):
    """A machine already recorded under one driver URL was given another."""

    def __init__(self, machine: str, recorded: str, requested: str) -> None:
        super().__init__(
            f"Machine {machine!r} is recorded under {recorded!r}, "
            f"refusing to reassign it to {requested!r}",
            machine,
        )
        self.recorded = recorded
        self.requested = requested


class NoDriverConfigured(ProvisioningError):
    """A machine was declared with no driver in scope and none recorded."""

    def __init__(self, machine: str) -> None:
        super().__init__(
            f"No driver in scope for machine {machine!r} and none recorded",
            machine,
        )


class InvalidTransition(ProvisioningError):
    """A machine was asked to move between two states that are not linked."""


class ParallelizationError(ProvisioningError):
    """One or more items of a parallel fan-out failed."""

    def __init__(self, errors: list[BaseException]) -> None:
        super().__init__(f"{len(errors)} parallel operation(s) failed")
        self.errors = errors
