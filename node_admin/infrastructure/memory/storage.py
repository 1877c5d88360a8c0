# node_admin/infrastructure/memory/storage.py

from pathlib import PurePosixPath
from threading import Lock
from typing import List, Optional, Set

from node_admin.agent.context import NodeAgentContext
from node_admin.core.models import ContainerName
from node_admin.infrastructure.memory.calls import CallLog, FaultInjector
from node_admin.storage.maintainer import StorageMaintainer


class InMemoryStorageMaintainer(StorageMaintainer, FaultInjector):
    """Tracks which containers have live data and which were archived."""

    def __init__(self, call_log: Optional[CallLog] = None):
        FaultInjector.__init__(self)
        self._live: Set[ContainerName] = set()
        self.archived: List[ContainerName] = []
        self._lock = Lock()
        self.call_log = call_log or CallLog()

    def write_data(self, name: ContainerName) -> None:
        """Simulate a container writing to its local storage."""
        with self._lock:
            self._live.add(name)

    def has_live_data(self, name: ContainerName) -> bool:
        return name in self._live

    def archive_node_storage(self, context: NodeAgentContext) -> Optional[PurePosixPath]:
        self.call_log.record("storage", "archive_node_storage", context.container_name)
        self._maybe_fail("archive_node_storage")
        with self._lock:
            if context.container_name not in self._live:
                return None
            self._live.discard(context.container_name)
            self.archived.append(context.container_name)
            return PurePosixPath("/archive") / f"{context.container_name}_{len(self.archived)}"

    def cleanup_after_archive(self) -> List[PurePosixPath]:
        self.call_log.record("storage", "cleanup_after_archive")
        self._maybe_fail("cleanup_after_archive")
        return []
