"""
Machine Port

Architectural Intent:
- Handle for a live, reachable machine returned by a driver
- Exposes remote execution and file transfer; the transport is opaque
- Implemented by SshMachine (fabric) or any driver-specific handle
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from provisio.domain.entities.machine_spec import MachineSpec


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Machine(ABC):
    """
    Port interface for a provisioned machine.
    """

    def __init__(self, machine_spec: MachineSpec) -> None:
        self.machine_spec = machine_spec

    @property
    def name(self) -> str:
        return self.machine_spec.name

    @abstractmethod
    async def execute(self, command: str) -> CommandResult:
        """Runs a command on the machine."""
        pass

    @abstractmethod
    async def upload_file(self, local_path: str, remote_path: str) -> None:
        pass

    @abstractmethod
    async def download_file(self, remote_path: str, local_path: str) -> None:
        pass

    def disconnect(self) -> None:
        """Releases any transport resources. Default: nothing to release."""
