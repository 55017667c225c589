"""
Composition Root

Architectural Intent:
- Dependency injection composition root for Provisio
- Single place where stores, drivers, orchestration and use cases are wired
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies from ProvisioConfig
- Lazy initialization for optional components (OTEL)
"""

from dataclasses import dataclass
from typing import Optional, Union

from provisio.application.orchestration.batch_coordinator import BatchCoordinator
from provisio.application.orchestration.parallelizer import Parallelizer
from provisio.application.use_cases.connect_to_machine import ConnectToMachine
from provisio.application.use_cases.declare_machine import DeclareMachine
from provisio.application.use_cases.run_machine_action import RunMachineAction
from provisio.infrastructure.adapters.static_driver import SCHEME as STATIC_SCHEME
from provisio.infrastructure.adapters.static_driver import StaticDriver
from provisio.infrastructure.config import ProvisioConfig
from provisio.infrastructure.driver_registry import DriverRegistry, default_registry
from provisio.infrastructure.event_bus import EventBus
from provisio.infrastructure.repositories.memory_store import InMemoryMachineStore
from provisio.infrastructure.repositories.sqlite_store import SQLiteMachineStore
from provisio.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter

MachineStore = Union[InMemoryMachineStore, SQLiteMachineStore]


@dataclass
class ProvisioningContainer:
    """DI container holding all wired dependencies."""

    config: ProvisioConfig
    store: MachineStore
    registry: DriverRegistry
    parallelizer: Parallelizer
    event_bus: EventBus
    telemetry: OTELExporter
    coordinator: BatchCoordinator
    declare_machine: DeclareMachine
    run_machine_action: RunMachineAction
    connect_to_machine: ConnectToMachine

    @property
    def storage_scope(self) -> Optional[str]:
        return self.config.storage.scope or None

    async def initialize_telemetry(self) -> None:
        await self.telemetry.initialize()

    def close(self) -> None:
        if isinstance(self.store, SQLiteMachineStore):
            self.store.close()


def _create_store(config: ProvisioConfig) -> MachineStore:
    backend = config.storage.backend.lower()
    if backend == "memory":
        return InMemoryMachineStore()
    if backend == "sqlite":
        store = SQLiteMachineStore(config.storage.path)
        store.connect()
        return store
    raise ValueError(f"Unknown storage backend: {config.storage.backend!r}")


def create_container(
    config: Optional[ProvisioConfig] = None,
    registry: Optional[DriverRegistry] = None,
) -> ProvisioningContainer:
    """Create and wire all dependencies."""
    config = config or ProvisioConfig()
    registry = registry if registry is not None else default_registry

    readiness = config.readiness.to_policy()
    registry.register(
        STATIC_SCHEME, lambda driver_url: StaticDriver(driver_url, readiness=readiness)
    )

    store = _create_store(config)
    parallelizer = Parallelizer(config.parallelism.max_simultaneous)
    event_bus = EventBus()
    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            insecure=config.telemetry.insecure,
        )
    )

    coordinator = BatchCoordinator(
        store,
        parallelizer,
        resolver=registry,
        event_bus=event_bus,
        telemetry=telemetry,
    )

    return ProvisioningContainer(
        config=config,
        store=store,
        registry=registry,
        parallelizer=parallelizer,
        event_bus=event_bus,
        telemetry=telemetry,
        coordinator=coordinator,
        declare_machine=DeclareMachine(store, registry),
        run_machine_action=RunMachineAction(coordinator),
        connect_to_machine=ConnectToMachine(store, registry),
    )
