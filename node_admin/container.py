#node_admin\container.py

"""Dependency injection container - wires the host orchestrator together."""

from datetime import timedelta
from typing import Optional

from node_admin.config import NodeAdminSettings
from node_admin.core.events import LoggingEventEmitter, MultiEventEmitter, RecordingEventEmitter
from node_admin.core.models import ResourceAllocation
from node_admin.infrastructure.http.node_repository import HttpNodeRepository
from node_admin.orchestrator.config import SchedulerConfig
from node_admin.orchestrator.host_orchestrator import HostOrchestrator
from node_admin.runtime.docker_runtime import DockerContainerRuntime
from node_admin.storage.maintainer import FileSystemStorageMaintainer


class Container:
    """Holds the long-lived objects of one node admin process."""

    def __init__(self, settings: NodeAdminSettings, runtime=None, node_repository=None, storage=None):
        self.settings = settings

        # ============================================
        # COLLABORATORS
        # ============================================

        self.node_repository = node_repository or HttpNodeRepository(
            base_url=settings.node_repository_url,
            timeout=settings.repository_timeout,
        )

        self.runtime = runtime or DockerContainerRuntime(
            base_url=settings.docker_base_url or None,
            timeout=settings.runtime_timeout,
            stop_timeout=settings.container_stop_timeout,
            storage_root=settings.storage_root,
        )

        self.storage = storage or FileSystemStorageMaintainer(
            storage_root=settings.storage_root,
            archive_root=settings.archive_root,
            retention=timedelta(days=settings.archive_retention_days),
        )

        # ============================================
        # EVENTS
        # ============================================

        self.recorder = RecordingEventEmitter()
        self.emitters = MultiEventEmitter([
            LoggingEventEmitter(),
            self.recorder,
        ])

        # ============================================
        # ORCHESTRATOR
        # ============================================

        self.orchestrator = HostOrchestrator(
            host_hostname=settings.host_hostname,
            node_repository=self.node_repository,
            runtime=self.runtime,
            storage=self.storage,
            capacity=ResourceAllocation(
                vcpus=settings.host_vcpus,
                memory_gb=settings.host_memory_gb,
                disk_gb=settings.host_disk_gb,
            ),
            config=SchedulerConfig.from_settings(settings),
            emitter=self.emitters,
        )


def build_container(settings: Optional[NodeAdminSettings] = None) -> Container:
    if settings is None:
        from node_admin.config import get_settings
        settings = get_settings()
    return Container(settings)
