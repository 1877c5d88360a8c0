#node_admin\orchestrator\registry.py

"""Host-wide registries shared by all agents on a host."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from node_admin.core.errors import ContainerNameConflict, ResourceExceeded
from node_admin.core.models import ContainerName, ResourceAllocation


class NameClaim:
    """A container name owned by one node."""

    def __init__(self, name: ContainerName, owner: str):
        self.name = name
        self.owner = owner
        self.lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<NameClaim(name={self.name}, owner={self.owner})>"


class ContainerNameRegistry:
    """
    Maps container names to the hostname that owns them.

    Two hostnames with the same first label map to the same container
    name; only one of them may hold it at a time. Mutations of a
    container happen while holding its claim's lock.
    """

    def __init__(self):
        self._claims: Dict[ContainerName, NameClaim] = {}
        self._lock = threading.Lock()

    def claim(self, name: ContainerName, owner: str) -> NameClaim:
        """Claim a name for owner. Idempotent for the same owner."""
        with self._lock:
            claim = self._claims.get(name)
            if claim is None:
                claim = NameClaim(name, owner)
                self._claims[name] = claim
            elif claim.owner != owner:
                raise ContainerNameConflict(
                    f"Container name {name} is owned by {claim.owner}, not {owner}"
                )
            return claim

    def release(self, name: ContainerName, owner: str) -> None:
        with self._lock:
            claim = self._claims.get(name)
            if claim is not None and claim.owner == owner:
                del self._claims[name]

    @contextmanager
    def mutating(self, name: ContainerName, owner: str) -> Iterator[NameClaim]:
        """Hold the name exclusively while creating or deleting its container."""
        claim = self.claim(name, owner)
        with claim.lock:
            yield claim

    def owner_of(self, name: ContainerName) -> Optional[str]:
        with self._lock:
            claim = self._claims.get(name)
            return claim.owner if claim else None

    def claimed_names(self) -> List[ContainerName]:
        with self._lock:
            return list(self._claims)

    def __repr__(self) -> str:
        return f"<ContainerNameRegistry(claimed={len(self._claims)})>"


class ResourceLedger:
    """
    Resources allocated to containers on this host.

    The sum of allocations never exceeds the host's capacity.
    """

    def __init__(self, capacity: ResourceAllocation):
        self._capacity = capacity
        self._allocations: Dict[ContainerName, ResourceAllocation] = {}
        self._lock = threading.Lock()

    def allocate(self, name: ContainerName, resources: ResourceAllocation) -> None:
        """
        Record resources for a container, replacing any earlier allocation.

        Raises ResourceExceeded (and leaves the ledger unchanged) if the
        host cannot fit it.
        """
        with self._lock:
            if self._allocations.get(name) == resources:
                return
            others = [r for n, r in self._allocations.items() if n != name]
            total = _sum(others + [resources])
            if total is not None and not total.fits_within(self._capacity):
                raise ResourceExceeded(
                    f"Allocating {resources.to_dict()} to {name} exceeds host capacity "
                    f"{self._capacity.to_dict()} (free: {self._free_locked(exclude=name)})"
                )
            self._allocations[name] = resources

    def release(self, name: ContainerName) -> None:
        with self._lock:
            self._allocations.pop(name, None)

    def allocation_of(self, name: ContainerName) -> Optional[ResourceAllocation]:
        with self._lock:
            return self._allocations.get(name)

    def allocated(self) -> Dict[str, float]:
        with self._lock:
            return _totals(self._allocations.values())

    def free(self) -> Dict[str, float]:
        with self._lock:
            return self._free_locked()

    @property
    def capacity(self) -> ResourceAllocation:
        return self._capacity

    def _free_locked(self, exclude: Optional[ContainerName] = None) -> Dict[str, float]:
        used = _totals(r for n, r in self._allocations.items() if n != exclude)
        return {
            "vcpus": self._capacity.vcpus - used["vcpus"],
            "memoryGb": self._capacity.memory_gb - used["memoryGb"],
            "diskGb": self._capacity.disk_gb - used["diskGb"],
        }

    def __repr__(self) -> str:
        return (
            f"<ResourceLedger(capacity={self._capacity.to_dict()}, "
            f"allocated={self.allocated()})>"
        )


def _sum(allocations: List[ResourceAllocation]) -> Optional[ResourceAllocation]:
    total = None
    for allocation in allocations:
        total = allocation if total is None else total + allocation
    return total


def _totals(allocations) -> Dict[str, float]:
    totals = {"vcpus": 0.0, "memoryGb": 0.0, "diskGb": 0.0}
    for allocation in allocations:
        totals["vcpus"] += allocation.vcpus
        totals["memoryGb"] += allocation.memory_gb
        totals["diskGb"] += allocation.disk_gb
    return totals
