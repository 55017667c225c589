"""
SSH Machine Adapter

Architectural Intent:
- Machine handle implemented over Fabric/SSH
- Gives callers remote execution and file transfer on a ready machine
- Doubles as the reachability probe drivers use while waiting for boot

Security:
- SSH connections use connect_timeout, allow_agent, look_for_keys
- Credentials come from the SSH agent or key files, never from the machine record
"""

import asyncio
import logging
from typing import Any, Optional

from fabric import Connection

from provisio.domain.entities.machine_spec import MachineSpec
from provisio.domain.ports.machine_port import CommandResult, Machine
from provisio.domain.value_objects.machine_address import MachineAddress

logger = logging.getLogger(__name__)


class SshMachine(Machine):
    """Machine reachable over SSH at a fixed address."""

    def __init__(
        self,
        machine_spec: MachineSpec,
        address: MachineAddress,
        connect_timeout: int = 30,
        connect_kwargs: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(machine_spec)
        self.address = address
        self.connect_timeout = connect_timeout
        self.connect_kwargs = connect_kwargs or {
            "allow_agent": True,
            "look_for_keys": True,
        }
        self._connection: Optional[Connection] = None

    def _get_connection(self) -> Connection:
        if self._connection is None:
            self._connection = Connection(
                host=self.address.host,
                user=self.address.user,
                port=self.address.port,
                connect_timeout=self.connect_timeout,
                connect_kwargs=self.connect_kwargs,
            )
        return self._connection

    async def execute(self, command: str) -> CommandResult:
        conn = self._get_connection()
        result = await asyncio.to_thread(conn.run, command, hide=True, warn=True)
        if result.failed:
            logger.warning(
                "Command failed on %s (exit %s): %s",
                self.name,
                result.return_code,
                result.stderr.strip(),
            )
        return CommandResult(
            exit_code=result.return_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def upload_file(self, local_path: str, remote_path: str) -> None:
        conn = self._get_connection()
        await asyncio.to_thread(conn.put, local_path, remote_path)
        logger.debug("Uploaded %s to %s:%s", local_path, self.name, remote_path)

    async def download_file(self, remote_path: str, local_path: str) -> None:
        conn = self._get_connection()
        await asyncio.to_thread(conn.get, remote_path, local_path)
        logger.debug("Downloaded %s:%s to %s", self.name, remote_path, local_path)

    async def is_reachable(self) -> bool:
        """Opens the SSH session; False while the host isn't accepting it."""
        conn = self._get_connection()
        try:
            await asyncio.to_thread(conn.open)
            return True
        except Exception as e:
            logger.debug("Machine %s not reachable at %s: %s", self.name, self.address, e)
            return False

    def disconnect(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __repr__(self) -> str:
        return f"SshMachine(name={self.name!r}, address={str(self.address)!r})"
