"""Integration tests for the declarative provisioning flow.

Wires the real container around the simulated `testdrv` driver and walks
machines through their lifecycle across simulated process restarts.
"""

import pytest
from unittest.mock import AsyncMock, patch
from conftest import SimulatedDriver
from provisio.application.execution_context import (
    with_driver,
    with_machine_batch,
    with_machine_options,
)
from provisio.composition_root import create_container
from provisio.domain.entities.machine_batch import BatchAction
from provisio.domain.entities.provisioning_state import MachineState
from provisio.domain.errors import UnknownDriver
from provisio.domain.events import MachineEvent
from provisio.infrastructure.adapters.logging_action_handler import LoggingActionHandler
from provisio.infrastructure.adapters.ssh_machine import SshMachine
from provisio.infrastructure.config import ProvisioConfig, ReadinessConfig, StorageConfig
from provisio.infrastructure.driver_registry import DriverRegistry


def make_container(tmp_path=None, **config):
    registry = DriverRegistry()
    registry.register("testdrv", SimulatedDriver)
    if tmp_path is not None:
        config.setdefault(
            "storage", StorageConfig(backend="sqlite", path=str(tmp_path / "machines.db"))
        )
    return create_container(ProvisioConfig(**config), registry=registry)


class TestDeclarativeFlow:
    @pytest.mark.asyncio
    async def test_batch_declared_in_scope(self):
        container = make_container()
        events = []

        async def collect(event):
            events.append(event.event_type)

        container.event_bus.subscribe(MachineEvent, collect)
        driver = SimulatedDriver("testdrv:acct1")

        with with_driver(driver), with_machine_options({"image": "debian"}):
            with with_machine_batch("web", max_simultaneous=2) as batch:
                for name in ("web1", "web2", "web3"):
                    container.declare_machine.execute(name)

        result = await container.coordinator.run(batch, LoggingActionHandler())
        assert result.all_succeeded
        assert len(container.store.list_names()) == 3
        assert events.count("MachineReady") == 3
        assert driver.declared == ["web1", "web2", "web3"]

    @pytest.mark.asyncio
    async def test_restart_reconnects_without_reallocating(self, tmp_path):
        first = make_container(tmp_path)
        driver = SimulatedDriver("testdrv:acct1")
        with with_driver(driver):
            declaration = first.declare_machine.execute("db1")
        await first.run_machine_action.execute(LoggingActionHandler(), declaration)
        first.close()

        # a new process: fresh container over the same database, no driver in scope
        second = make_container(tmp_path)
        machine, resolved = await second.connect_to_machine.execute("db1")
        assert resolved.driver_url == "testdrv:acct1"
        assert machine.name == "db1"

        redeclared = second.declare_machine.execute("db1")
        outcome = await second.run_machine_action.execute(LoggingActionHandler(), redeclared)
        assert outcome.state is MachineState.READY
        assert driver.cloud.create_calls == 1
        second.close()

    @pytest.mark.asyncio
    async def test_destroy_after_restart(self, tmp_path):
        first = make_container(tmp_path)
        driver = SimulatedDriver("testdrv:acct1")
        with with_driver(driver):
            declaration = first.declare_machine.execute("db1")
        await first.run_machine_action.execute(LoggingActionHandler(), declaration)
        first.close()

        second = make_container(tmp_path)
        redeclared = second.declare_machine.execute("db1")
        outcome = await second.run_machine_action.execute(
            LoggingActionHandler(), redeclared, BatchAction.DESTROY
        )
        assert outcome.state is MachineState.DELETED
        assert driver.cloud.instances == {}
        assert second.store.load("db1") == {"name": "db1", "normal": {}}
        second.close()

    @pytest.mark.asyncio
    async def test_unknown_recorded_scheme(self, tmp_path):
        container = make_container(tmp_path)
        container.store.save(
            {"name": "old1", "normal": {"provisioning": {"driver_url": "nosuch:abc"}}}
        )
        with pytest.raises(UnknownDriver):
            await container.connect_to_machine.execute("old1")
        container.close()

    @pytest.mark.asyncio
    async def test_storage_scope(self):
        container = make_container(storage=StorageConfig(scope="staging"))
        driver = SimulatedDriver("testdrv:acct1")
        with with_driver(driver):
            declaration = container.declare_machine.execute(
                "web1", storage_scope=container.storage_scope
            )
        await container.run_machine_action.execute(LoggingActionHandler(), declaration)
        assert container.store.exists("web1", "staging")
        assert not container.store.exists("web1")


class TestStaticDriverFlow:
    @pytest.mark.asyncio
    async def test_converge_static_host(self):
        container = make_container(
            readiness=ReadinessConfig(
                timeout_seconds=1, poll_interval_seconds=0.01, max_interval_seconds=0.01
            )
        )
        driver = container.registry.driver_for("static:")
        with with_driver(driver):
            declaration = container.declare_machine.execute(
                "bastion", machine_options={"address": "admin@192.168.1.10:2222"}
            )

        with patch.object(SshMachine, "is_reachable", AsyncMock(return_value=True)):
            outcome = await container.run_machine_action.execute(
                LoggingActionHandler(), declaration
            )

        assert outcome.state is MachineState.READY
        assert isinstance(outcome.machine, SshMachine)
        record = container.store.load("bastion")["normal"]["provisioning"]
        assert record["driver_url"] == "static:"
        assert record["provider_state"]["address"]["port"] == 2222

    @pytest.mark.asyncio
    async def test_dry_run_static_host_records_nothing(self):
        container = make_container()
        driver = container.registry.driver_for("static:")
        with with_driver(driver):
            declaration = container.declare_machine.execute(
                "bastion", machine_options={"address": "10.0.0.7"}
            )

        probe = AsyncMock(return_value=False)
        with patch.object(SshMachine, "is_reachable", probe):
            outcome = await container.run_machine_action.execute(
                LoggingActionHandler(dry_run=True), declaration
            )

        assert outcome.state is MachineState.READY
        probe.assert_not_awaited()
        assert declaration.machine_spec.provider_state is None
        assert declaration.machine_spec.driver_url is None
        assert not container.store.exists("bastion")
