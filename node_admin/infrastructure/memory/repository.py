# node_admin/infrastructure/memory/repository.py

from dataclasses import replace
from threading import Lock
from typing import Dict, List, Optional

from node_admin.core.errors import ConflictError
from node_admin.core.models import NodeAttributes, NodeSpec, NodeState
from node_admin.core.repository import NodeRepository
from node_admin.core.state_machine import NodeStateMachine
from node_admin.infrastructure.memory.calls import CallLog, FaultInjector


class InMemoryNodeRepository(NodeRepository, FaultInjector):
    """Deterministic node repository used in tests."""

    def __init__(self, call_log: Optional[CallLog] = None):
        FaultInjector.__init__(self)
        self._store: Dict[str, NodeSpec] = {}
        self._faults_reported: Dict[str, str] = {}
        self._lock = Lock()
        self.call_log = call_log or CallLog()

    # -------------------------
    # SETUP (repository side)
    # -------------------------

    def add_node(self, spec: NodeSpec) -> None:
        """Create or replace a node, as the repository's own API would."""
        with self._lock:
            self._store[spec.hostname] = spec

    def remove_node(self, hostname: str) -> None:
        with self._lock:
            self._store.pop(hostname, None)

    def reassign(self, hostname: str, parent_hostname: Optional[str]) -> None:
        with self._lock:
            spec = self._store[hostname]
            self._store[hostname] = replace(spec, parent_hostname=parent_hostname)

    def node(self, hostname: str) -> Optional[NodeSpec]:
        """Stored spec, without recording a call."""
        return self._store.get(hostname)

    def reported_fault(self, hostname: str) -> Optional[str]:
        return self._faults_reported.get(hostname)

    # -------------------------
    # CLIENT CONTRACT
    # -------------------------

    def get_node_spec(self, hostname: str) -> Optional[NodeSpec]:
        self.call_log.record("repository", "get_node_spec", hostname)
        self._maybe_fail("get_node_spec")
        return self._store.get(hostname)

    def list_child_hostnames(self, parent_hostname: str) -> List[str]:
        self.call_log.record("repository", "list_child_hostnames", parent_hostname)
        self._maybe_fail("list_child_hostnames")
        return sorted(s.hostname for s in self._store.values() if s.parent_hostname == parent_hostname)

    def update_attributes(self, hostname: str, attributes: NodeAttributes) -> None:
        self.call_log.record("repository", "update_attributes", hostname, attributes)
        self._maybe_fail("update_attributes")
        with self._lock:
            spec = self._store.get(hostname)
            if spec is None:
                raise ConflictError(f"Node {hostname} not found")
            self._store[hostname] = spec.with_attributes(attributes)
            if attributes.fault:
                self._faults_reported[hostname] = attributes.fault
            elif attributes.fault == "":
                self._faults_reported.pop(hostname, None)

    def set_node_state(self, hostname: str, state: NodeState) -> None:
        self.call_log.record("repository", "set_node_state", hostname, state)
        self._maybe_fail("set_node_state")
        with self._lock:
            spec = self._store.get(hostname)
            if spec is None:
                raise ConflictError(f"Node {hostname} not found")
            NodeStateMachine.validate(spec.state, state)
            self._store[hostname] = spec.with_state(state)
