#tests\test_registry.py

"""Test container name registry and resource ledger."""

import threading

import pytest

from node_admin.core.errors import ContainerNameConflict, ResourceExceeded
from node_admin.core.models import ContainerName, ResourceAllocation
from node_admin.orchestrator.registry import ContainerNameRegistry, ResourceLedger


NAME = ContainerName("node1")


class TestContainerNameRegistry:
    """Test name ownership."""

    def test_claim(self):
        registry = ContainerNameRegistry()

        claim = registry.claim(NAME, "node1.a.com")

        assert claim.owner == "node1.a.com"
        assert registry.owner_of(NAME) == "node1.a.com"

    def test_claim_is_idempotent_for_owner(self):
        registry = ContainerNameRegistry()

        first = registry.claim(NAME, "node1.a.com")
        second = registry.claim(NAME, "node1.a.com")

        assert first is second

    def test_claim_by_other_owner_fails(self):
        """Test two hostnames cannot hold the same container name."""
        registry = ContainerNameRegistry()
        registry.claim(NAME, "node1.a.com")

        with pytest.raises(ContainerNameConflict):
            registry.claim(NAME, "node1.b.com")

    def test_release_frees_name(self):
        registry = ContainerNameRegistry()
        registry.claim(NAME, "node1.a.com")

        registry.release(NAME, "node1.a.com")

        assert registry.owner_of(NAME) is None
        registry.claim(NAME, "node1.b.com")

    def test_release_by_non_owner_ignored(self):
        registry = ContainerNameRegistry()
        registry.claim(NAME, "node1.a.com")

        registry.release(NAME, "node1.b.com")

        assert registry.owner_of(NAME) == "node1.a.com"

    def test_mutating_holds_claim_lock(self):
        registry = ContainerNameRegistry()

        with registry.mutating(NAME, "node1.a.com") as claim:
            assert claim.lock.locked()

        assert not claim.lock.locked()
        assert registry.claimed_names() == [NAME]

    def test_mutating_by_other_owner_fails(self):
        registry = ContainerNameRegistry()
        registry.claim(NAME, "node1.a.com")

        with pytest.raises(ContainerNameConflict):
            with registry.mutating(NAME, "node1.b.com"):
                pass

    def test_concurrent_claims(self):
        """Test exactly one of many racing owners wins a name."""
        registry = ContainerNameRegistry()
        winners = []
        barrier = threading.Barrier(10)

        def claim(owner):
            barrier.wait()
            try:
                registry.claim(NAME, owner)
                winners.append(owner)
            except ContainerNameConflict:
                pass

        threads = [threading.Thread(target=claim, args=(f"node1.h{i}.com",)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert registry.owner_of(NAME) == winners[0]


class TestResourceLedger:
    """Test host resource accounting."""

    @pytest.fixture
    def ledger(self):
        return ResourceLedger(ResourceAllocation(vcpus=4, memory_gb=16, disk_gb=100))

    def test_initial(self, ledger):
        assert ledger.allocated() == {"vcpus": 0.0, "memoryGb": 0.0, "diskGb": 0.0}
        assert ledger.free() == {"vcpus": 4, "memoryGb": 16, "diskGb": 100}

    def test_allocate(self, ledger):
        ledger.allocate(NAME, ResourceAllocation(1, 4, 20))

        assert ledger.allocation_of(NAME) == ResourceAllocation(1, 4, 20)
        assert ledger.free() == {"vcpus": 3, "memoryGb": 12, "diskGb": 80}

    def test_allocate_replaces_previous(self, ledger):
        ledger.allocate(NAME, ResourceAllocation(1, 4, 20))
        ledger.allocate(NAME, ResourceAllocation(4, 16, 100))

        assert ledger.allocated() == {"vcpus": 4, "memoryGb": 16, "diskGb": 100}

    def test_over_capacity_fails_and_keeps_ledger(self, ledger):
        """Test rejected allocation leaves existing allocations alone."""
        ledger.allocate(ContainerName("node1"), ResourceAllocation(3, 8, 50))

        with pytest.raises(ResourceExceeded):
            ledger.allocate(ContainerName("node2"), ResourceAllocation(2, 8, 50))

        assert ledger.allocation_of(ContainerName("node2")) is None
        assert ledger.allocated() == {"vcpus": 3, "memoryGb": 8, "diskGb": 50}

    def test_release(self, ledger):
        ledger.allocate(NAME, ResourceAllocation(1, 4, 20))

        ledger.release(NAME)
        ledger.release(NAME)

        assert ledger.allocation_of(NAME) is None
        assert ledger.free() == {"vcpus": 4, "memoryGb": 16, "diskGb": 100}
