#tests\conftest.py

"""Pytest configuration and fixtures."""

import random
from dataclasses import replace

import pytest

from node_admin.agent.node_agent import NodeAgent
from node_admin.core.events import RecordingEventEmitter
from node_admin.core.models import (
    DockerImage,
    NodeSpec,
    NodeState,
    NodeType,
    ResourceAllocation,
)
from node_admin.infrastructure.memory.calls import CallLog
from node_admin.infrastructure.memory.repository import InMemoryNodeRepository
from node_admin.infrastructure.memory.runtime import InMemoryContainerRuntime
from node_admin.infrastructure.memory.storage import InMemoryStorageMaintainer
from node_admin.orchestrator.config import SchedulerConfig
from node_admin.orchestrator.host_orchestrator import HostOrchestrator
from node_admin.orchestrator.registry import ContainerNameRegistry, ResourceLedger


HOST = "host1.example.com"
NODE = "node1.example.com"
IMAGE = DockerImage.from_string("registry.example.com:5000/vespa/node:8.1.2")
IMAGE_V2 = DockerImage.from_string("registry.example.com:5000/vespa/node:8.2.0")
CAPACITY = ResourceAllocation(vcpus=8, memory_gb=32, disk_gb=500)


@pytest.fixture
def node_spec():
    """Factory for node specs assigned to HOST."""
    def make(hostname=NODE, state=NodeState.ACTIVE, image=IMAGE, vcpus=2, memory_gb=4, disk_gb=50, **changes):
        spec = NodeSpec(
            hostname=hostname,
            state=state,
            node_type=NodeType.TENANT,
            resources=ResourceAllocation(vcpus=vcpus, memory_gb=memory_gb, disk_gb=disk_gb),
            parent_hostname=HOST,
            wanted_image=image,
        )
        return replace(spec, **changes)
    return make


# -------------------------
# FAKES
# -------------------------

@pytest.fixture
def call_log():
    """One log shared by all fakes, so cross-collaborator ordering is visible."""
    return CallLog()


@pytest.fixture
def repository(call_log):
    return InMemoryNodeRepository(call_log)


@pytest.fixture
def runtime(call_log):
    return InMemoryContainerRuntime(call_log)


@pytest.fixture
def storage(call_log):
    return InMemoryStorageMaintainer(call_log)


@pytest.fixture
def recorder():
    return RecordingEventEmitter()


@pytest.fixture
def name_registry():
    return ContainerNameRegistry()


@pytest.fixture
def ledger():
    return ResourceLedger(CAPACITY)


# -------------------------
# AGENTS AND ORCHESTRATOR
# -------------------------

@pytest.fixture
def make_agent(repository, runtime, storage, name_registry, ledger, recorder):
    """Factory for agents sharing the fakes, registry and ledger."""
    def make(hostname=NODE, is_suspended=lambda: False, full_reconcile_every=10):
        return NodeAgent(
            hostname=hostname,
            node_repository=repository,
            runtime=runtime,
            storage=storage,
            name_registry=name_registry,
            ledger=ledger,
            is_suspended=is_suspended,
            emitter=recorder,
            full_reconcile_every=full_reconcile_every,
        )
    return make


@pytest.fixture
def agent(make_agent):
    return make_agent()


@pytest.fixture
def orchestrator(repository, runtime, storage, recorder):
    """Orchestrator whose agents are only ticked explicitly through tick_all."""
    return HostOrchestrator(
        host_hostname=HOST,
        node_repository=repository,
        runtime=runtime,
        storage=storage,
        capacity=CAPACITY,
        config=SchedulerConfig(jitter=0.0, full_reconcile_every=3),
        emitter=recorder,
        rng=random.Random(42),
    )
