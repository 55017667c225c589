"""
Static Driver

Architectural Intent:
- Driver for machines that already exist: bare metal or long-lived hosts
  reached over SSH at a known address
- "Allocation" records the address given in machine options; "ready" waits
  until SSH answers; nothing is ever created or destroyed

Design Decisions:
- Driver URL is "static:" optionally followed by a free-form label, e.g.
  "static:lab-rack-3"; it carries no credentials
- Provider state: {"address": {"host", "user", "port"}}
- An address recorded earlier wins over a different one in options, so
  re-allocation never silently moves a machine
- stop and delete are bookkeeping only; the host keeps running
"""

import logging
from typing import Any, Optional

from provisio.domain.entities.machine_spec import MachineSpec
from provisio.domain.errors import NotFound, ProvisionFailed
from provisio.domain.ports.action_handler_port import ActionHandlerPort
from provisio.domain.ports.driver_port import Driver, MachineOptions
from provisio.domain.services.readiness import ReadinessPolicy, wait_until_ready
from provisio.domain.value_objects.driver_url import DriverUrl
from provisio.domain.value_objects.machine_address import MachineAddress
from provisio.infrastructure.adapters.ssh_machine import SshMachine

logger = logging.getLogger(__name__)

SCHEME = "static"


def _address_from_options(machine_options: MachineOptions) -> Optional[MachineAddress]:
    raw = machine_options.get("address")
    if raw is None:
        return None
    if isinstance(raw, MachineAddress):
        return raw
    if isinstance(raw, dict):
        return MachineAddress.from_dict(raw)
    return MachineAddress.parse(str(raw))


def _recorded_address(machine_spec: MachineSpec) -> Optional[MachineAddress]:
    state = machine_spec.provider_state or {}
    if "address" not in state:
        return None
    return MachineAddress.from_dict(state["address"])


class StaticDriver(Driver):
    """Driver for pre-existing hosts reachable over SSH."""

    def __init__(
        self,
        driver_url: str = "static:",
        readiness: Optional[ReadinessPolicy] = None,
        connect_kwargs: Optional[dict[str, Any]] = None,
    ) -> None:
        url = DriverUrl(driver_url)
        if url.scheme != SCHEME:
            raise ValueError(f"StaticDriver cannot serve {driver_url!r}")
        self._driver_url = str(url)
        self.readiness = readiness or ReadinessPolicy()
        self.connect_kwargs = connect_kwargs

    @property
    def driver_url(self) -> str:
        return self._driver_url

    async def allocate_machine(
        self,
        action_handler: ActionHandlerPort,
        machine_spec: MachineSpec,
        machine_options: MachineOptions,
    ) -> MachineSpec:
        """
        Records the host's address in provider state. Nothing is created and
        the host is not contacted, so this runs the same way in a dry run.
        """
        recorded = _recorded_address(machine_spec)
        requested = _address_from_options(machine_options)

        if recorded is not None:
            if requested is not None and requested != recorded:
                logger.warning(
                    "Machine %s is recorded at %s; ignoring requested address %s",
                    machine_spec.name,
                    recorded,
                    requested,
                )
            return machine_spec

        if requested is None:
            raise ProvisionFailed(
                f"Static machine {machine_spec.name!r} needs an 'address' option",
                machine_spec.name,
            )

        action_handler.report_progress(
            f"recording machine {machine_spec.name} at {requested}"
        )
        state = dict(machine_spec.provider_state or {})
        state["address"] = requested.to_dict()
        machine_spec.provider_state = state
        return machine_spec

    async def ready_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> SshMachine:
        machine = await self.connect_to_machine(machine_spec)
        if action_handler.dry_run:
            action_handler.report_progress(f"would wait for {machine_spec.name} to answer SSH")
            return machine
        await wait_until_ready(
            machine.is_reachable,
            self.readiness,
            description=f"machine {machine_spec.name} at {machine.address}",
            machine=machine_spec.name,
        )
        return machine

    async def connect_to_machine(self, machine_spec: MachineSpec) -> SshMachine:
        address = _recorded_address(machine_spec)
        if address is None:
            raise NotFound(
                f"Machine {machine_spec.name!r} has no recorded address",
                machine_spec.name,
            )
        return SshMachine(machine_spec, address, connect_kwargs=self.connect_kwargs)

    async def stop_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> None:
        action_handler.report_progress(
            f"static machine {machine_spec.name} is not managed; leaving it running"
        )

    async def delete_machine(
        self, action_handler: ActionHandlerPort, machine_spec: MachineSpec
    ) -> None:
        action_handler.report_progress(
            f"forgetting static machine {machine_spec.name}; the host is untouched"
        )
