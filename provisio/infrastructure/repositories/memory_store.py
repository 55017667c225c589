"""
In-Memory Machine Store

Architectural Intent:
- MachineStorePort implementation for tests and single-process use
- Records are kept as JSON text so every save/load round-trips exactly as
  a real document store would, with no aliasing of caller dicts
"""

from __future__ import annotations
import json
import threading
from typing import Any, Optional

from provisio.domain.errors import NotFound


class InMemoryMachineStore:
    """Machine records held in a dict keyed by (scope, name)."""

    def __init__(self) -> None:
        self._records: dict[tuple[Optional[str], str], str] = {}
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self, name: str, scope: Optional[str] = None) -> dict[str, Any]:
        with self._lock:
            document = self._records.get((scope, name))
        if document is None:
            raise NotFound(f"No record for machine {name!r} in scope {scope!r}", name)
        return json.loads(document)

    def save(self, record: dict[str, Any], scope: Optional[str] = None) -> None:
        document = json.dumps(record)
        with self._lock:
            self._records[(scope, record["name"])] = document
            self.save_count += 1

    def exists(self, name: str, scope: Optional[str] = None) -> bool:
        with self._lock:
            return (scope, name) in self._records

    def delete(self, name: str, scope: Optional[str] = None) -> bool:
        with self._lock:
            return self._records.pop((scope, name), None) is not None

    def list_names(self, scope: Optional[str] = None) -> list[str]:
        with self._lock:
            return sorted(n for s, n in self._records if s == scope)
