"""
Machine Store Port

Architectural Intent:
- Port interface for the external storage of machine records
- Records are opaque documents; the store must round-trip every field
- Implemented by in-memory and SQLite repositories

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Synchronous: storage calls are short and are made between provider calls
- `scope` partitions records (one registry/server per scope); None is default
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class MachineStorePort(Protocol):
    """Port for loading and saving machine records."""

    def load(self, name: str, scope: Optional[str] = None) -> dict[str, Any]:
        """Return the stored record; raise NotFound when there is none."""
        ...

    def save(self, record: dict[str, Any], scope: Optional[str] = None) -> None:
        """Insert or replace the record keyed by record['name']."""
        ...

    def exists(self, name: str, scope: Optional[str] = None) -> bool:
        ...

    def delete(self, name: str, scope: Optional[str] = None) -> bool:
        """Remove a record. Returns True if one was removed."""
        ...

    def list_names(self, scope: Optional[str] = None) -> list[str]:
        ...
