"""
Batch Coordinator Module

Architectural Intent:
- Drives a batch of machines through allocate and ready (or stop/destroy)
  using each machine's driver and the shared parallelizer
- Persists every spec change before a machine advances to its next state
- Isolates failures per machine and always reports the full outcome map

State Machine (per machine):
- DECLARED -> ALLOCATING -> ALLOCATED -> READYING -> READY
- DECLARED -> STOPPING -> STOPPED, DECLARED -> DELETING -> DELETED
- any in-flight state -> FAILED, capturing the originating error

Design Decisions:
- Machines are grouped by driver; each group allocates through the driver's
  allocate_machines so providers with a bulk API can use it
- Driver groups run concurrently; within one machine ready never starts
  before its own allocation was persisted
- A save failure after a successful provider call becomes PersistenceFailed
  and is logged at CRITICAL; it is never retried, since blind retry risks
  creating a duplicate resource
- A dry run works on detached copies of every spec, so the caller's
  records stay exactly as they were
- Driver resolution happens up front: UnknownDriver and DriverLoadError
  abort the whole run before any machine work starts
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from provisio.application.dtos.batch_dtos import BatchResult, MachineOutcome
from provisio.application.orchestration.parallelizer import Parallelizer
from provisio.domain.entities.machine_batch import BatchAction, MachineBatch
from provisio.domain.entities.machine_declaration import MachineDeclaration
from provisio.domain.entities.machine_spec import MachineSpec
from provisio.domain.entities.provisioning_state import MachineProgress, MachineState
from provisio.domain.errors import (
    DriverMismatch,
    PersistenceFailed,
    ProvisionFailed,
    Unprovisioned,
)
from provisio.domain.events import (
    MachineAllocated,
    MachineDeleted,
    MachineEvent,
    MachineFailed,
    MachineReady,
    MachineStopped,
)
from provisio.domain.ports.action_handler_port import ActionHandlerPort
from provisio.domain.ports.driver_port import Driver
from provisio.domain.ports.driver_resolver_port import DriverResolverPort
from provisio.domain.ports.event_bus_port import EventBusPort
from provisio.domain.ports.machine_port import Machine
from provisio.domain.ports.machine_store_port import MachineStorePort
from provisio.domain.ports.telemetry_port import TelemetryPort

logger = logging.getLogger(__name__)

_ALLOCATING_ACTIONS = (BatchAction.ALLOCATE, BatchAction.CONVERGE)


@dataclass
class _BatchRun:
    """Mutable state for one coordinator run."""
    batch: MachineBatch
    action: BatchAction
    action_handler: ActionHandlerPort
    progress: dict[str, MachineProgress]
    machines: dict[str, Machine] = field(default_factory=dict)

    @property
    def max_simultaneous(self) -> Optional[int]:
        return self.batch.max_simultaneous


class BatchCoordinator:
    """Runs a MachineBatch's action across all of its machines."""

    def __init__(
        self,
        store: MachineStorePort,
        parallelizer: Parallelizer,
        resolver: Optional[DriverResolverPort] = None,
        event_bus: Optional[EventBusPort] = None,
        telemetry: Optional[TelemetryPort] = None,
    ) -> None:
        self.store = store
        self.parallelizer = parallelizer
        self.resolver = resolver
        self.event_bus = event_bus
        self.telemetry = telemetry

    async def run(
        self,
        batch: MachineBatch,
        action_handler: ActionHandlerPort,
        action: Optional[BatchAction | str] = None,
    ) -> BatchResult:
        """
        Applies the batch action (or `action` if given) to every machine.

        Never raises for per-machine failures; inspect the returned
        BatchResult. Raises UnknownDriver/DriverLoadError before doing any
        work if a recorded driver URL can't be resolved.
        """
        effective_action = BatchAction.parse(action) if action else batch.action
        declarations = batch.declarations
        if action_handler.dry_run:
            declarations = [
                replace(d, machine_spec=d.machine_spec.copy()) for d in declarations
            ]
        run = _BatchRun(
            batch=batch,
            action=effective_action,
            action_handler=action_handler,
            progress={d.name: MachineProgress(d.name) for d in declarations},
        )

        drivers, mismatched = self._resolve_drivers(declarations, effective_action)

        logger.info(
            "Batch %s: %s %d machine(s)",
            batch.name,
            effective_action.value,
            len(declarations),
        )
        span = self._start_span(
            f"batch.{effective_action.value}", {"batch": batch.name}
        )
        try:
            for declaration, error in mismatched:
                await self._fail(run, declaration.machine_spec, "resolve", error)

            groups = self._group_by_driver(declarations, drivers)
            await asyncio.gather(
                *(
                    self._run_group(run, driver, group)
                    for driver, group in groups
                )
            )
        finally:
            if span is not None and self.telemetry:
                self.telemetry.end_span(span)

        result = BatchResult(
            batch=batch.name,
            action=effective_action,
            outcomes={
                name: MachineOutcome(
                    name=name,
                    state=progress.state,
                    error=progress.error,
                    machine=run.machines.get(name),
                    history=progress.history,
                )
                for name, progress in run.progress.items()
            },
        )

        if self.telemetry:
            self.telemetry.record_batch(batch.name, len(result), len(result.failed))
        if result.failed:
            logger.warning(
                "Batch %s finished with %d of %d machine(s) failed: %s",
                batch.name,
                len(result.failed),
                len(result),
                ", ".join(o.name for o in result.failed),
            )
        else:
            logger.info("Batch %s finished: %d machine(s) ok", batch.name, len(result))
        return result

    # -- Driver resolution ----------------------------------------------------

    def _resolve_drivers(
        self, declarations: list[MachineDeclaration], action: BatchAction
    ) -> tuple[dict[str, Driver], list[tuple[MachineDeclaration, Exception]]]:
        """
        Picks the driver each machine runs under.

        Allocation uses the driver captured at declaration. Other actions
        follow the machine's recorded driver URL, reinflating a driver when
        it differs from the captured one.
        """
        drivers: dict[str, Driver] = {}
        mismatched: list[tuple[MachineDeclaration, Exception]] = []
        by_url: dict[str, Driver] = {}

        for declaration in declarations:
            spec = declaration.machine_spec
            captured = declaration.driver
            recorded = spec.driver_url

            if action in _ALLOCATING_ACTIONS or not recorded:
                drivers[declaration.name] = captured
                continue
            if recorded == captured.driver_url:
                drivers[declaration.name] = by_url.setdefault(recorded, captured)
                continue
            if self.resolver is None:
                mismatched.append(
                    (
                        declaration,
                        DriverMismatch(spec.name, recorded, captured.driver_url),
                    )
                )
                continue
            if recorded not in by_url:
                by_url[recorded] = self.resolver.driver_for(recorded)
            drivers[declaration.name] = by_url[recorded]

        return drivers, mismatched

    @staticmethod
    def _group_by_driver(
        declarations: list[MachineDeclaration], drivers: dict[str, Driver]
    ) -> list[tuple[Driver, list[MachineDeclaration]]]:
        groups: dict[int, tuple[Driver, list[MachineDeclaration]]] = {}
        for declaration in declarations:
            driver = drivers.get(declaration.name)
            if driver is None:
                continue
            groups.setdefault(id(driver), (driver, []))[1].append(declaration)
        return list(groups.values())

    # -- Per-driver work ------------------------------------------------------

    async def _run_group(
        self, run: _BatchRun, driver: Driver, group: list[MachineDeclaration]
    ) -> None:
        if run.action in _ALLOCATING_ACTIONS:
            allocated = await self._allocate(run, driver, group)
            if run.action is BatchAction.CONVERGE:
                await self._ready_all(run, driver, allocated)
        elif run.action is BatchAction.READY:
            provisioned = []
            for declaration in group:
                spec = declaration.machine_spec
                if spec.is_provisioned:
                    provisioned.append(spec)
                else:
                    await self._fail(run, spec, "ready", Unprovisioned(spec.name))
            await self._ready_all(run, driver, provisioned)
        elif run.action is BatchAction.STOP:
            await self.parallelizer.map(
                [d.machine_spec for d in group],
                lambda spec: self._stop_one(run, driver, spec),
                max_simultaneous=run.max_simultaneous,
            )
        elif run.action is BatchAction.DESTROY:
            await self.parallelizer.map(
                [d.machine_spec for d in group],
                lambda spec: self._delete_one(run, driver, spec),
                max_simultaneous=run.max_simultaneous,
            )

    async def _allocate(
        self, run: _BatchRun, driver: Driver, group: list[MachineDeclaration]
    ) -> list[MachineSpec]:
        pairs = []
        for declaration in group:
            spec = declaration.machine_spec
            if spec.driver_url and spec.driver_url != driver.driver_url:
                await self._fail(
                    run,
                    spec,
                    "allocate",
                    DriverMismatch(spec.name, spec.driver_url, driver.driver_url),
                )
                continue
            run.progress[spec.name].advance(MachineState.ALLOCATING)
            pairs.append((spec, declaration.machine_options))

        if not pairs:
            return []

        started = time.monotonic()
        try:
            result = await driver.allocate_machines(
                run.action_handler,
                pairs,
                self.parallelizer,
                max_simultaneous=run.max_simultaneous,
            )
        except Exception as e:
            for spec, _ in pairs:
                await self._fail(run, spec, "allocate", e)
            return []
        duration_ms = (time.monotonic() - started) * 1000

        if len(result) != len(pairs):
            error = ProvisionFailed(
                f"{driver!r} returned {len(result)} allocation outcome(s) "
                f"for {len(pairs)} machine(s)"
            )
            for spec, _ in pairs:
                await self._fail(run, spec, "allocate", error)
            return []

        allocated = []
        for (spec, _), outcome in zip(pairs, result):
            if outcome.error is not None:
                await self._fail(run, spec, "allocate", outcome.error, duration_ms)
                continue
            if isinstance(outcome.result, MachineSpec):
                spec = outcome.result
            try:
                spec.assign_driver_url(driver.driver_url)
            except DriverMismatch as e:
                await self._fail(run, spec, "allocate", e, duration_ms)
                continue
            if not await self._persist(run, spec, "allocate"):
                continue

            run.progress[spec.name].advance(MachineState.ALLOCATED)
            self._record_phase(spec.name, "allocate", duration_ms, True)
            logger.info(
                "Machine %s allocated via %s",
                spec.name,
                spec.driver_url,
                extra={"machine": spec.name, "driver_url": spec.driver_url},
            )
            await self._publish(run, MachineAllocated, spec)
            allocated.append(spec)
        return allocated

    async def _ready_all(
        self, run: _BatchRun, driver: Driver, specs: list[MachineSpec]
    ) -> None:
        if specs:
            await self.parallelizer.map(
                specs,
                lambda spec: self._ready_one(run, driver, spec),
                max_simultaneous=run.max_simultaneous,
            )

    async def _ready_one(self, run: _BatchRun, driver: Driver, spec: MachineSpec) -> None:
        run.progress[spec.name].advance(MachineState.READYING)
        started = time.monotonic()
        try:
            machine = await driver.ready_machine(run.action_handler, spec)
        except Exception as e:
            await self._fail(run, spec, "ready", e, (time.monotonic() - started) * 1000)
            return

        if spec.dirty and not await self._persist(run, spec, "ready"):
            machine.disconnect()
            return

        run.machines[spec.name] = machine
        run.progress[spec.name].advance(MachineState.READY)
        self._record_phase(spec.name, "ready", (time.monotonic() - started) * 1000, True)
        logger.info("Machine %s is ready", spec.name, extra={"machine": spec.name})
        await self._publish(run, MachineReady, spec)

    async def _stop_one(self, run: _BatchRun, driver: Driver, spec: MachineSpec) -> None:
        run.progress[spec.name].advance(MachineState.STOPPING)
        if spec.is_provisioned:
            try:
                await driver.stop_machine(run.action_handler, spec)
            except Exception as e:
                await self._fail(run, spec, "stop", e)
                return
            if spec.dirty and not await self._persist(run, spec, "stop"):
                return
        else:
            logger.debug("Machine %s was never allocated, nothing to stop", spec.name)

        run.progress[spec.name].advance(MachineState.STOPPED)
        await self._publish(run, MachineStopped, spec)

    async def _delete_one(self, run: _BatchRun, driver: Driver, spec: MachineSpec) -> None:
        run.progress[spec.name].advance(MachineState.DELETING)
        if spec.is_provisioned:
            driver_url = spec.driver_url
            try:
                await driver.delete_machine(run.action_handler, spec)
            except Exception as e:
                await self._fail(run, spec, "delete", e)
                return
            spec.clear_provisioning()
            if not await self._persist(run, spec, "delete"):
                return
            logger.info(
                "Machine %s deleted from %s",
                spec.name,
                driver_url,
                extra={"machine": spec.name, "driver_url": driver_url},
            )
        else:
            logger.debug("Machine %s was never allocated, nothing to delete", spec.name)

        run.progress[spec.name].advance(MachineState.DELETED)
        await self._publish(run, MachineDeleted, spec)

    # -- Helpers --------------------------------------------------------------

    async def _persist(self, run: _BatchRun, spec: MachineSpec, phase: str) -> bool:
        if run.action_handler.dry_run:
            run.action_handler.report_progress(f"would save machine {spec.name}")
            return True
        try:
            spec.save(self.store)
            return True
        except Exception as e:
            error = PersistenceFailed(spec.name, phase)
            error.__cause__ = e
            logger.critical(
                "Machine %s: %s succeeded but saving its record failed; "
                "the provider resource may exist unrecorded",
                spec.name,
                phase,
                exc_info=e,
                extra={"machine": spec.name, "driver_url": spec.driver_url},
            )
            await self._fail(run, spec, phase, error)
            return False

    async def _fail(
        self,
        run: _BatchRun,
        spec: MachineSpec,
        phase: str,
        error: BaseException,
        duration_ms: float = 0.0,
    ) -> None:
        run.progress[spec.name].fail(error)
        if not isinstance(error, PersistenceFailed):
            logger.error(
                "Machine %s failed during %s: %s",
                spec.name,
                phase,
                error,
                extra={"machine": spec.name, "driver_url": spec.driver_url},
            )
        self._record_phase(spec.name, phase, duration_ms, False)
        await self._publish(
            run,
            MachineFailed,
            spec,
            phase=phase,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    async def _publish(
        self, run: _BatchRun, event_type: type[MachineEvent], spec: MachineSpec, **fields
    ) -> None:
        if self.event_bus is None:
            return
        event = event_type(
            aggregate_id=spec.name,
            batch=run.batch.name,
            driver_url=spec.driver_url,
            **fields,
        )
        await self.event_bus.publish([event])

    def _record_phase(
        self, machine: str, phase: str, duration_ms: float, success: bool
    ) -> None:
        if self.telemetry:
            self.telemetry.record_phase(machine, phase, duration_ms, success)

    def _start_span(self, name: str, attributes: dict[str, str]):
        if self.telemetry:
            return self.telemetry.start_span(name, attributes)
        return None
