"""
Connect To Machine Use Case

Architectural Intent:
- Reattach to an already provisioned machine from its stored record alone
- No allocation and no waiting: the driver is reinflated from the recorded
  driver URL and asked for a handle
"""

import logging
from typing import Optional

from provisio.domain.entities.machine_spec import MachineSpec
from provisio.domain.errors import Unprovisioned
from provisio.domain.ports.driver_port import Driver
from provisio.domain.ports.driver_resolver_port import DriverResolverPort
from provisio.domain.ports.machine_port import Machine
from provisio.domain.ports.machine_store_port import MachineStorePort

logger = logging.getLogger(__name__)


class ConnectToMachine:
    def __init__(self, store: MachineStorePort, resolver: DriverResolverPort):
        self.store = store
        self.resolver = resolver

    async def execute(
        self, name: str, storage_scope: Optional[str] = None
    ) -> tuple[Machine, Driver]:
        spec = MachineSpec.load(name, self.store, storage_scope)
        if not spec.driver_url:
            raise Unprovisioned(name)

        driver = self.resolver.driver_for(spec.driver_url)
        machine = await driver.connect_to_machine(spec)
        logger.debug("Connected to machine %s via %s", name, spec.driver_url)
        return machine, driver
