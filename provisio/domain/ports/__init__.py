"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the provisioning core needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from provisio.domain.ports.action_handler_port import ActionHandlerPort
from provisio.domain.ports.driver_port import Driver, MachineOptions
from provisio.domain.ports.driver_resolver_port import DriverResolverPort
from provisio.domain.ports.event_bus_port import EventBusPort
from provisio.domain.ports.machine_port import CommandResult, Machine
from provisio.domain.ports.machine_store_port import MachineStorePort
from provisio.domain.ports.telemetry_port import TelemetryPort

__all__ = [
    "ActionHandlerPort",
    "Driver",
    "MachineOptions",
    "DriverResolverPort",
    "EventBusPort",
    "CommandResult",
    "Machine",
    "MachineStorePort",
    "TelemetryPort",
]
