"""
Driver Resolver Port

Architectural Intent:
- Port for turning a recorded driver URL back into a Driver instance
- Implemented by DriverRegistry; resolution does no network I/O
"""

from typing import Protocol, runtime_checkable

from provisio.domain.ports.driver_port import Driver


@runtime_checkable
class DriverResolverPort(Protocol):
    def driver_for(self, driver_url: str) -> Driver:
        """Raises UnknownDriver or DriverLoadError when it can't resolve."""
        ...
