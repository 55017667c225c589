"""
Machine Spec Module

Architectural Intent:
- Persisted identity and location record for one machine
- Holds enough information to find and contact the machine again after a
  process restart, without replaying allocation
- Wraps an externally stored document; the provisioning core owns only the
  `normal.provisioning` namespace and never disturbs anything else in it

Design Decisions:
- The driver URL is identity: it is assigned once and never overwritten
- Provider state is opaque and driver-owned; it is stored exactly as given
- Persistence is explicit (save) so callers decide when a mutation is durable
- Documents are deep-copied at the store boundary to prevent aliasing
"""

from __future__ import annotations
import copy
from typing import TYPE_CHECKING, Any, Optional

from provisio.domain.errors import DriverMismatch
from provisio.domain.value_objects.driver_url import DriverUrl

if TYPE_CHECKING:
    from provisio.domain.ports.machine_store_port import MachineStorePort

NAMESPACE = "provisioning"


class MachineSpec:
    """Identity and location record for a single machine."""

    def __init__(self, record: dict[str, Any], storage_scope: Optional[str] = None):
        if not record.get("name"):
            raise ValueError("Machine record must have a name")
        self._record = record
        self._storage_scope = storage_scope
        self._dirty = False

    @classmethod
    def new(cls, name: str, storage_scope: Optional[str] = None) -> "MachineSpec":
        spec = cls({"name": name}, storage_scope)
        spec._dirty = True
        return spec

    @classmethod
    def load(
        cls, name: str, store: MachineStorePort, storage_scope: Optional[str] = None
    ) -> "MachineSpec":
        """Load the stored record for `name`; raises NotFound if absent."""
        return cls(copy.deepcopy(store.load(name, storage_scope)), storage_scope)

    @classmethod
    def load_or_new(
        cls, name: str, store: MachineStorePort, storage_scope: Optional[str] = None
    ) -> "MachineSpec":
        if store.exists(name, storage_scope):
            return cls.load(name, store, storage_scope)
        return cls.new(name, storage_scope)

    # -- Read accessors -------------------------------------------------------

    @property
    def name(self) -> str:
        return self._record["name"]

    @property
    def storage_scope(self) -> Optional[str]:
        return self._storage_scope

    @property
    def record(self) -> dict[str, Any]:
        """The whole backing document. Other namespaces may be edited freely."""
        return self._record

    @property
    def driver_url(self) -> Optional[str]:
        return self._namespace().get("driver_url")

    @property
    def provider_state(self) -> Optional[dict[str, Any]]:
        """
        Freeform driver-owned state used to locate the machine again.
        """
        return self._namespace().get("provider_state")

    @provider_state.setter
    def provider_state(self, value: Optional[dict[str, Any]]) -> None:
        self._namespace(create=True)["provider_state"] = value
        self._dirty = True

    @property
    def is_provisioned(self) -> bool:
        return bool(self.driver_url)

    @property
    def dirty(self) -> bool:
        """True when the in-memory record has unsaved changes."""
        return self._dirty

    # -- Mutators -------------------------------------------------------------

    def assign_driver_url(self, driver_url: str) -> None:
        """Record the driver URL the first time the machine is allocated."""
        DriverUrl(driver_url)
        current = self.driver_url
        if current == driver_url:
            return
        if current:
            raise DriverMismatch(self.name, current, driver_url)
        self._namespace(create=True)["driver_url"] = driver_url
        self._dirty = True

    def clear_provisioning(self) -> None:
        """Return the record to its pre-allocation state."""
        normal = self._record.get("normal")
        if isinstance(normal, dict) and NAMESPACE in normal:
            del normal[NAMESPACE]
            self._dirty = True

    def copy(self) -> "MachineSpec":
        """A detached copy; changes to it never reach this spec's record."""
        duplicate = MachineSpec(copy.deepcopy(self._record), self._storage_scope)
        duplicate._dirty = self._dirty
        return duplicate

    def save(self, store: MachineStorePort) -> None:
        """Persist the record through the storage collaborator."""
        store.save(copy.deepcopy(self._record), self._storage_scope)
        self._dirty = False

    # -- Internals ------------------------------------------------------------

    def _namespace(self, create: bool = False) -> dict[str, Any]:
        normal = self._record.get("normal")
        if not isinstance(normal, dict):
            if not create:
                return {}
            normal = self._record["normal"] = {}
        ns = normal.get(NAMESPACE)
        if not isinstance(ns, dict):
            if not create:
                return {}
            ns = normal[NAMESPACE] = {}
        return ns

    def __repr__(self) -> str:
        return (
            f"MachineSpec(name={self.name!r}, driver_url={self.driver_url!r}, "
            f"storage_scope={self._storage_scope!r})"
        )
