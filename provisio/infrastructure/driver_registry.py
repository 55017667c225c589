"""
Driver Registry

Architectural Intent:
- Maps a driver URL scheme to the constructor of a concrete Driver
- Reinflates drivers from recorded driver URLs without any network I/O
- New providers plug in by registration, never by editing core code

Design Decisions:
- Explicit registration (register / register_driver) populates the registry
  at process startup; re-registering a scheme overwrites it
- Unregistered schemes fall back to the `provisio.drivers` entry point group:
  an entry point named after the scheme yields either a Driver subclass or a
  callable that registers drivers itself
- A scheme nothing knows about is UnknownDriver; an entry point that exists
  but fails to import is DriverLoadError with the original cause attached
"""

from __future__ import annotations
import inspect
import logging
from importlib.metadata import EntryPoint, entry_points
from typing import Callable, Optional, Protocol

from provisio.application.use_cases.connect_to_machine import ConnectToMachine
from provisio.domain.errors import DriverLoadError, UnknownDriver
from provisio.domain.ports.driver_port import Driver
from provisio.domain.ports.machine_port import Machine
from provisio.domain.ports.machine_store_port import MachineStorePort
from provisio.domain.value_objects.driver_url import scheme_of

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "provisio.drivers"

DriverConstructor = Callable[[str], Driver]


class DriverDiscovery(Protocol):
    def discover(self, scheme: str, registry: "DriverRegistry") -> bool:
        """
        Tries to make a constructor for `scheme` available in `registry`.
        Returns False when nothing is known about the scheme.
        """
        ...


class EntryPointDriverDiscovery:
    """Finds drivers published under the provisio.drivers entry point group."""

    def __init__(self, group: str = ENTRY_POINT_GROUP) -> None:
        self.group = group

    def _find(self, scheme: str) -> Optional[EntryPoint]:
        for entry_point in entry_points(group=self.group):
            if entry_point.name == scheme:
                return entry_point
        return None

    def discover(self, scheme: str, registry: "DriverRegistry") -> bool:
        entry_point = self._find(scheme)
        if entry_point is None:
            return False

        logger.debug("Loading driver %r from entry point %s", scheme, entry_point.value)
        loaded = entry_point.load()
        if inspect.isclass(loaded) and issubclass(loaded, Driver):
            registry.register(scheme, loaded)
        else:
            loaded(registry)
        return registry.is_registered(scheme)


class DriverRegistry:
    """Scheme -> Driver constructor registry."""

    def __init__(self, discovery: Optional[DriverDiscovery] = None) -> None:
        self._constructors: dict[str, DriverConstructor] = {}
        self._discovery = discovery

    def register(self, scheme: str, constructor: DriverConstructor) -> None:
        if scheme in self._constructors:
            logger.debug("Re-registering driver scheme %r", scheme)
        self._constructors[scheme] = constructor

    def unregister(self, scheme: str) -> None:
        self._constructors.pop(scheme, None)

    def is_registered(self, scheme: str) -> bool:
        return scheme in self._constructors

    def schemes(self) -> list[str]:
        return sorted(self._constructors)

    def driver_for(self, driver_url: str) -> Driver:
        """Inflates the driver responsible for `driver_url`."""
        scheme = scheme_of(driver_url)
        constructor = self._constructors.get(scheme)

        if constructor is None and self._discovery is not None:
            try:
                found = self._discovery.discover(scheme, self)
            except Exception as e:
                logger.error(
                    "Driver for scheme %r (driver_url %r) could not be loaded: %s",
                    scheme,
                    driver_url,
                    e,
                )
                raise DriverLoadError(scheme, driver_url) from e
            if found:
                constructor = self._constructors.get(scheme)

        if constructor is None:
            raise UnknownDriver(scheme, driver_url)
        return constructor(driver_url)


default_registry = DriverRegistry(discovery=EntryPointDriverDiscovery())


def register_driver(scheme: str, constructor: DriverConstructor) -> None:
    """Registers a driver in the process-wide registry."""
    default_registry.register(scheme, constructor)


async def connect_to_machine(
    name: str,
    store: MachineStorePort,
    storage_scope: Optional[str] = None,
    registry: Optional[DriverRegistry] = None,
) -> tuple[Machine, Driver]:
    """Reattaches to a provisioned machine by name. See ConnectToMachine."""
    use_case = ConnectToMachine(store, registry or default_registry)
    return await use_case.execute(name, storage_scope)
