"""
Driver URL Value Object

Architectural Intent:
- Immutable value object for the string identifying where machines come from
- The scheme (text before the first ':') selects the driver implementation
- Everything after the scheme is provider-scoped location (account, directory)

Examples: "fog:AWS:123456789012", "vagrant:/var/vms", "static:", "docker:"
"""

import re
from dataclasses import dataclass

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-_]*$")

# user:password@ style credentials must never be recorded in a driver URL
_CREDENTIALS_RE = re.compile(r"//[^/@\s]+:[^/@\s]+@")


def scheme_of(driver_url: str) -> str:
    """Return the scheme portion of a driver URL."""
    return driver_url.split(":", 1)[0]


@dataclass(frozen=True)
class DriverUrl:
    """
    Value Object representing a driver URL.
    """
    value: str

    def __post_init__(self) -> None:
        if ":" not in self.value:
            raise ValueError(f"Driver URL must contain a scheme: {self.value!r}")
        if not _SCHEME_RE.match(self.scheme):
            raise ValueError(f"Invalid driver scheme in {self.value!r}")
        if _CREDENTIALS_RE.search(self.value):
            raise ValueError("Driver URLs must not embed credentials")

    @property
    def scheme(self) -> str:
        return scheme_of(self.value)

    @property
    def location(self) -> str:
        return self.value.split(":", 1)[1]

    def __str__(self) -> str:
        return self.value

    @staticmethod
    def build(scheme: str, location: str = "") -> "DriverUrl":
        return DriverUrl(f"{scheme}:{location}")
