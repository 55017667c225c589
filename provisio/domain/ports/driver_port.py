"""
Driver Port

Architectural Intent:
- Capability contract every machine provider implements
- A Driver instance represents a place machines come from: for a cloud, one
  account; for a VM or container host, the directory or daemon holding them
- Drivers are inflated from their driver URL alone, so a machine recorded
  yesterday can be found again today without cached credentials

Design Decisions:
- Every lifecycle method must be idempotent: if the work is already done it
  does nothing, which makes any step safe to retry after a crash
- allocate_machines and resource_created have default implementations;
  providers override them only when they can do better
- Drivers wrap irreversible side effects in action_handler.perform_action so
  dry runs are honoured by the provider, not assumed by the caller
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Sequence

from provisio.domain.ports.action_handler_port import ActionHandlerPort
from provisio.domain.ports.machine_port import Machine

if TYPE_CHECKING:
    from provisio.application.orchestration.parallelizer import (
        Parallelizer,
        ParallelResult,
    )
    from provisio.domain.entities.machine_declaration import MachineDeclaration
    from provisio.domain.entities.machine_spec import MachineSpec

MachineOptions = dict[str, Any]


class Driver(ABC):
    """
    Port interface for a machine provider.

    To implement a driver, subclass this and implement driver_url,
    allocate_machine, ready_machine, connect_to_machine, stop_machine and
    delete_machine, then register the class for its URL scheme with
    DriverRegistry.register (or publish it under the `provisio.drivers`
    entry point group).

    Registered classes are constructed with the driver URL as their only
    argument.
    """

    @property
    @abstractmethod
    def driver_url(self) -> str:
        """
        URL identifying the driver class (its scheme) and the place machines
        are found, e.g. "fog:AWS:123456789012" or "vagrant:/var/vms".
        Must not contain credentials.
        """
        pass

    @abstractmethod
    async def allocate_machine(
        self,
        action_handler: ActionHandlerPort,
        machine_spec: MachineSpec,
        machine_options: MachineOptions,
    ) -> MachineSpec:
        """
        Ensures the underlying resource exists, creating or starting it if
        needed, and records enough provider state on the machine spec to find it
        again. Does not wait for the machine to boot.

        machine_options describe the desired machine (image, size, bootstrap
        credentials) and are never persisted. The returned spec is saved by
        the caller immediately.
        """
        pass

    @abstractmethod
    async def ready_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> Machine:
        """
        Waits until the machine is running and reachable and returns a handle
        to it. Never allocates, but may kick a stopped machine. Raises
        NotReady when the bounded wait elapses and ProvisionFailed when the
        provider reports a terminal failure.
        """
        pass

    @abstractmethod
    async def connect_to_machine(self, machine_spec: MachineSpec) -> Machine:
        """
        Returns a handle without changing anything or waiting. Raises
        NotFound when the recorded provider state no longer resolves.
        """
        pass

    @abstractmethod
    async def stop_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> None:
        """Stops the machine; a no-op when it is already stopped."""
        pass

    @abstractmethod
    async def delete_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> None:
        """
        Destroys the machine, returning things to the state before
        allocate_machine was called. A no-op when already deleted.
        """
        pass

    # -- Optional interface ---------------------------------------------------

    async def allocate_machines(
        self,
        action_handler: ActionHandlerPort,
        specs_and_options: Sequence[tuple[MachineSpec, MachineOptions]],
        parallelizer: Parallelizer,
        max_simultaneous: Optional[int] = None,
    ) -> ParallelResult:
        """
        Allocates a group of machines; same effect as allocate_machine on
        each. The default fans out through the shared parallelizer, adding
        no cap beyond its own unless max_simultaneous is given.

        Returns one outcome per input pair, in input order.
        """

        async def allocate(pair: tuple[MachineSpec, MachineOptions]) -> MachineSpec:
            machine_spec, machine_options = pair
            return await self.allocate_machine(
                action_handler, machine_spec, machine_options
            )

        return await parallelizer.map(
            list(specs_and_options), allocate, max_simultaneous=max_simultaneous
        )

    def resource_created(self, declaration: MachineDeclaration) -> None:
        """Notification that a machine was declared under this driver."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.driver_url!r})"
