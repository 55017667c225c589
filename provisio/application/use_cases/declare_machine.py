"""
Declare Machine Use Case

Architectural Intent:
- First entry point for the declarative layer: "machine X exists under the
  current driver and options"
- Loads the machine's record (or starts a fresh one), captures the bindings
  in scope and enrols the machine in the current batch

Design Decisions:
- Options in scope are merged under options given explicitly (explicit wins,
  nested dicts merge recursively)
- With no driver in scope, a previously provisioned machine is reinflated
  from its recorded driver URL
"""

import logging
from typing import Any, Optional

from provisio.application.execution_context import ExecutionContext
from provisio.domain.entities.machine_declaration import MachineDeclaration
from provisio.domain.entities.machine_spec import MachineSpec
from provisio.domain.errors import NoDriverConfigured
from provisio.domain.ports.driver_port import Driver
from provisio.domain.ports.driver_resolver_port import DriverResolverPort
from provisio.domain.ports.machine_store_port import MachineStorePort

logger = logging.getLogger(__name__)


def merge_options(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_options(merged[key], value)
        else:
            merged[key] = value
    return merged


class DeclareMachine:
    def __init__(
        self,
        store: MachineStorePort,
        resolver: Optional[DriverResolverPort] = None,
    ):
        self.store = store
        self.resolver = resolver

    def execute(
        self,
        name: str,
        storage_scope: Optional[str] = None,
        machine_options: Optional[dict[str, Any]] = None,
        driver: Optional[Driver] = None,
    ) -> MachineDeclaration:
        context = ExecutionContext.capture()
        spec = MachineSpec.load_or_new(name, self.store, storage_scope)

        driver = driver or context.driver
        if driver is None:
            if not spec.driver_url or self.resolver is None:
                raise NoDriverConfigured(name)
            driver = self.resolver.driver_for(spec.driver_url)

        options = merge_options(context.machine_options or {}, machine_options or {})
        declaration = MachineDeclaration(spec, driver, options)

        if context.machine_batch is not None:
            context.machine_batch.add(declaration)
            logger.debug(
                "Machine %s enrolled in batch %s", name, context.machine_batch.name
            )

        driver.resource_created(declaration)
        return declaration
