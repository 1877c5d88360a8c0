# node_admin/infrastructure/memory/runtime.py

from dataclasses import replace
from threading import Lock
from typing import Dict, Optional, Set

from node_admin.core.errors import ConflictError, ImageInvalid
from node_admin.core.models import (
    ContainerName,
    ContainerStatus,
    DockerImage,
    ExecResult,
    ResourceAllocation,
)
from node_admin.infrastructure.memory.calls import CallLog, FaultInjector
from node_admin.runtime.base import ContainerRuntime


class InMemoryContainerRuntime(ContainerRuntime, FaultInjector):
    """Container runtime fake that keeps containers in a dict."""

    def __init__(self, call_log: Optional[CallLog] = None):
        FaultInjector.__init__(self)
        self._containers: Dict[ContainerName, ContainerStatus] = {}
        self._invalid_images: Set[DockerImage] = set()
        self._exec_exit_codes: Dict[str, int] = {}
        self._lock = Lock()
        self.call_log = call_log or CallLog()

    # -------------------------
    # SETUP
    # -------------------------

    def mark_image_invalid(self, image: DockerImage) -> None:
        self._invalid_images.add(image)

    def set_exec_exit_code(self, command: str, exit_code: int) -> None:
        """Exit code for commands whose last argument is ``command``."""
        self._exec_exit_codes[command] = exit_code

    def containers(self) -> Dict[ContainerName, ContainerStatus]:
        with self._lock:
            return dict(self._containers)

    def kill(self, name: ContainerName) -> None:
        """Simulate a container dying on its own."""
        with self._lock:
            status = self._containers.get(name)
            if status:
                self._containers[name] = replace(status, state="exited")

    # -------------------------
    # RUNTIME CONTRACT
    # -------------------------

    def pull_image(self, image: DockerImage) -> None:
        self.call_log.record("runtime", "pull_image", image)
        self._maybe_fail("pull_image")
        if image in self._invalid_images:
            raise ImageInvalid(f"Image not found: {image}")

    def create_container(
        self,
        image: DockerImage,
        name: ContainerName,
        resources: ResourceAllocation,
    ) -> ContainerStatus:
        self.call_log.record("runtime", "create_container", image, name)
        self._maybe_fail("create_container")
        if image in self._invalid_images:
            raise ImageInvalid(f"Image not found: {image}")
        with self._lock:
            existing = self._containers.get(name)
            if existing is not None:
                if existing.image == image:
                    return existing
                raise ConflictError(f"Container {name} already exists with image {existing.image}")
            status = ContainerStatus(name=name, image=image, state="created", resources=resources)
            self._containers[name] = status
            return status

    def start(self, name: ContainerName) -> None:
        self.call_log.record("runtime", "start", name)
        self._maybe_fail("start")
        with self._lock:
            status = self._containers.get(name)
            if status is None:
                raise ConflictError(f"Cannot start missing container {name}")
            self._containers[name] = replace(status, state="running")

    def stop(self, name: ContainerName) -> None:
        self.call_log.record("runtime", "stop", name)
        self._maybe_fail("stop")
        with self._lock:
            status = self._containers.get(name)
            if status is not None and status.running:
                self._containers[name] = replace(status, state="exited")

    def remove(self, name: ContainerName) -> None:
        self.call_log.record("runtime", "remove", name)
        self._maybe_fail("remove")
        with self._lock:
            self._containers.pop(name, None)

    def exec_as_user(self, name: ContainerName, user: str, *command: str) -> ExecResult:
        self.call_log.record("runtime", "exec_as_user", name, user, *command)
        self._maybe_fail("exec_as_user")
        with self._lock:
            status = self._containers.get(name)
        if status is None or not status.running:
            raise ConflictError(f"Container {name} is not running")
        exit_code = self._exec_exit_codes.get(command[-1], 0) if command else 0
        return ExecResult(exit_code=exit_code)

    def inspect(self, name: ContainerName) -> Optional[ContainerStatus]:
        self.call_log.record("runtime", "inspect", name)
        self._maybe_fail("inspect")
        with self._lock:
            return self._containers.get(name)
