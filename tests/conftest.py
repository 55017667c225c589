"""Shared test fixtures.

Provides `testdrv`, a simulated cloud driver whose provider-side state lives
in a SimulatedCloud keyed by account, so tests can inspect what a real
provider would have created and inject failures per machine.
"""

import asyncio
import itertools
from typing import Optional

import pytest

from provisio.application.orchestration.batch_coordinator import BatchCoordinator
from provisio.application.orchestration.parallelizer import Parallelizer
from provisio.domain.errors import NotFound, ProvisionFailed
from provisio.domain.ports.driver_port import Driver
from provisio.domain.ports.machine_port import CommandResult, Machine
from provisio.domain.services.readiness import ReadinessPolicy, wait_until_ready
from provisio.domain.value_objects.driver_url import DriverUrl
from provisio.infrastructure.adapters.logging_action_handler import LoggingActionHandler
from provisio.infrastructure.driver_registry import DriverRegistry
from provisio.infrastructure.event_bus import EventBus
from provisio.infrastructure.repositories.memory_store import InMemoryMachineStore

FAST_READINESS = ReadinessPolicy(
    timeout_seconds=0.1,
    poll_interval_seconds=0.01,
    backoff_factor=1.0,
    max_interval_seconds=0.01,
)


class SimulatedCloud:
    """Provider-side state for one account."""

    def __init__(self, account: str) -> None:
        self.account = account
        self.instances: dict[str, dict] = {}
        self.create_calls = 0
        self.delete_calls = 0
        self.boot_immediately = True
        self.fail_allocate: set[str] = set()
        self.fail_ready: set[str] = set()
        self.op_delay = 0.0
        self.in_flight = 0
        self.peak_in_flight = 0
        self._ids = itertools.count(1)

    def instance_for(self, name: str) -> Optional[dict]:
        for instance in self.instances.values():
            if instance["name"] == name:
                return instance
        return None

    def boot_all(self) -> None:
        for instance in self.instances.values():
            instance["booted"] = True

    async def call(self) -> None:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.op_delay)
        finally:
            self.in_flight -= 1

    def create(self, name: str) -> str:
        instance_id = f"i-{self.account}-{next(self._ids)}"
        self.instances[instance_id] = {
            "name": name,
            "running": True,
            "booted": self.boot_immediately,
        }
        self.create_calls += 1
        return instance_id


class SimulatedMachine(Machine):
    def __init__(self, machine_spec, instance_id: str) -> None:
        super().__init__(machine_spec)
        self.instance_id = instance_id
        self.commands: list[str] = []
        self.disconnected = False

    async def execute(self, command: str) -> CommandResult:
        self.commands.append(command)
        return CommandResult(exit_code=0, stdout=f"{self.name}: {command}")

    async def upload_file(self, local_path: str, remote_path: str) -> None:
        self.commands.append(f"put {local_path} {remote_path}")

    async def download_file(self, remote_path: str, local_path: str) -> None:
        self.commands.append(f"get {remote_path} {local_path}")

    def disconnect(self) -> None:
        self.disconnected = True


class SimulatedDriver(Driver):
    """Driver for `testdrv:<account>` URLs backed by SimulatedCloud."""

    clouds: dict[str, SimulatedCloud] = {}

    def __init__(self, driver_url: str) -> None:
        self._driver_url = str(DriverUrl(driver_url))
        account = DriverUrl(driver_url).location or "default"
        self.cloud = self.clouds.setdefault(account, SimulatedCloud(account))
        self.declared: list[str] = []

    @property
    def driver_url(self) -> str:
        return self._driver_url

    def _instance(self, machine_spec) -> tuple[Optional[str], Optional[dict]]:
        state = machine_spec.provider_state or {}
        instance_id = state.get("instance_id")
        if instance_id is None:
            return None, None
        return instance_id, self.cloud.instances.get(instance_id)

    async def allocate_machine(self, action_handler, machine_spec, machine_options):
        await self.cloud.call()
        if machine_spec.name in self.cloud.fail_allocate:
            raise ProvisionFailed(f"quota exceeded for {machine_spec.name}", machine_spec.name)

        instance_id, instance = self._instance(machine_spec)
        if instance is not None:
            if not instance["running"]:
                await action_handler.perform_action(
                    f"start instance {instance_id}",
                    lambda: self._start(instance),
                )
            return machine_spec

        async def create():
            return self.cloud.create(machine_spec.name)

        created = await action_handler.perform_action(
            f"create instance for {machine_spec.name}", create
        )
        if created is not None:
            machine_spec.provider_state = {
                "instance_id": created,
                "image": machine_options.get("image", "base"),
            }
        return machine_spec

    async def _start(self, instance: dict) -> None:
        instance["running"] = True

    async def ready_machine(self, action_handler, machine_spec):
        await self.cloud.call()
        if machine_spec.name in self.cloud.fail_ready:
            raise ProvisionFailed(f"{machine_spec.name} failed to boot", machine_spec.name)
        instance_id, instance = self._instance(machine_spec)
        if instance is None:
            raise NotFound(f"no instance for {machine_spec.name}", machine_spec.name)

        async def booted() -> bool:
            return instance["booted"]

        await wait_until_ready(
            booted, FAST_READINESS, f"instance {instance_id}", machine_spec.name
        )
        return SimulatedMachine(machine_spec, instance_id)

    async def connect_to_machine(self, machine_spec):
        instance_id, instance = self._instance(machine_spec)
        if instance is None:
            raise NotFound(f"no instance for {machine_spec.name}", machine_spec.name)
        return SimulatedMachine(machine_spec, instance_id)

    async def stop_machine(self, action_handler, machine_spec):
        _, instance = self._instance(machine_spec)
        if instance is None or not instance["running"]:
            return
        await action_handler.perform_action(
            f"stop {machine_spec.name}", lambda: self._stop(instance)
        )

    async def _stop(self, instance: dict) -> None:
        instance["running"] = False

    async def delete_machine(self, action_handler, machine_spec):
        instance_id, instance = self._instance(machine_spec)
        if instance is None:
            return

        async def destroy():
            del self.cloud.instances[instance_id]
            self.cloud.delete_calls += 1

        await action_handler.perform_action(f"delete instance {instance_id}", destroy)

    def resource_created(self, declaration) -> None:
        self.declared.append(declaration.name)


class FlakyStore(InMemoryMachineStore):
    """Store whose saves fail for the named machines."""

    def __init__(self, failing: set[str]) -> None:
        super().__init__()
        self.failing = set(failing)

    def save(self, record, scope=None) -> None:
        if record["name"] in self.failing:
            raise OSError(f"disk full while saving {record['name']}")
        super().save(record, scope)


@pytest.fixture(autouse=True)
def reset_clouds():
    SimulatedDriver.clouds.clear()
    yield
    SimulatedDriver.clouds.clear()


@pytest.fixture
def registry():
    r = DriverRegistry()
    r.register("testdrv", SimulatedDriver)
    return r


@pytest.fixture
def store():
    return InMemoryMachineStore()


@pytest.fixture
def driver():
    return SimulatedDriver("testdrv:acct1")


@pytest.fixture
def handler():
    return LoggingActionHandler()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def coordinator(store, registry, event_bus):
    return BatchCoordinator(
        store, Parallelizer(max_simultaneous=4), resolver=registry, event_bus=event_bus
    )
