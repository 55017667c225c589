"""
Machine Address Value Object

Architectural Intent:
- Immutable value object for the network address a machine is reached at
- Validates hostname format (DNS, IPv4, IPv6), port bounds, non-empty user
- Round-trips through provider state as a plain dict so drivers can record it
"""

import re
from dataclasses import dataclass
from typing import Any

# RFC 1123 hostname: labels of alnum/hyphens, dot-separated
_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)

_IPV4_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")

# Simplified; accepts ::1, fe80::1 and friends
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")


def _is_valid_host(host: str) -> bool:
    if not host:
        return False

    m = _IPV4_RE.match(host)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())

    if _IPV6_RE.match(host) and ":" in host:
        return True

    return bool(_HOSTNAME_RE.match(host)) and len(host) <= 253


@dataclass(frozen=True)
class MachineAddress:
    """
    Value Object for the SSH-style address of a provisioned machine.
    """
    host: str
    user: str = "root"
    port: int = 22

    def __post_init__(self) -> None:
        if not self.user:
            raise ValueError("Machine user cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if not _is_valid_host(self.host):
            raise ValueError(f"Invalid hostname: {self.host!r}")

    def __str__(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.user}@{host}:{self.port}"

    def to_dict(self) -> dict[str, Any]:
        return {"host": self.host, "user": self.user, "port": self.port}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "MachineAddress":
        return MachineAddress(
            host=data["host"],
            user=data.get("user", "root"),
            port=int(data.get("port", 22)),
        )

    @staticmethod
    def parse(address: str) -> "MachineAddress":
        """
        Parses 'user@host:port', 'host', or 'user@[::1]:port' into an address.
        """
        user = "root"
        port = 22
        host = address.strip()

        if "@" in host:
            user, host = host.split("@", 1)

        if host.startswith("["):
            bracket_end = host.find("]")
            if bracket_end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {address}")
            remainder = host[bracket_end + 1:]
            host = host[1:bracket_end]
            if remainder.startswith(":"):
                port = int(remainder[1:])
        elif host.count(":") == 1:
            host, _, port_text = host.partition(":")
            port = int(port_text)

        return MachineAddress(host=host, user=user, port=port)
