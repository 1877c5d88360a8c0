# node_admin/runtime/base.py

from abc import ABC, abstractmethod
from typing import Optional

from node_admin.core.models import (
    ContainerName,
    ContainerStatus,
    DockerImage,
    ExecResult,
    ResourceAllocation,
)


class ContainerRuntime(ABC):
    """
    Capability interface over the container engine.

    All mutations are idempotent with respect to the target state:
    creating an existing container of the same image, stopping a stopped
    container and removing a missing container are no-ops.

    Raises RuntimeUnavailable when the engine cannot be reached,
    ImageInvalid / ResourceExceeded for requests that will never succeed.
    """

    @abstractmethod
    def pull_image(self, image: DockerImage) -> None:
        """Make the image available locally."""
        raise NotImplementedError

    @abstractmethod
    def create_container(
        self,
        image: DockerImage,
        name: ContainerName,
        resources: ResourceAllocation,
    ) -> ContainerStatus:
        raise NotImplementedError

    @abstractmethod
    def start(self, name: ContainerName) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self, name: ContainerName) -> None:
        raise NotImplementedError

    @abstractmethod
    def remove(self, name: ContainerName) -> None:
        raise NotImplementedError

    @abstractmethod
    def exec_as_user(self, name: ContainerName, user: str, *command: str) -> ExecResult:
        raise NotImplementedError

    @abstractmethod
    def inspect(self, name: ContainerName) -> Optional[ContainerStatus]:
        """Returns None if the container does not exist."""
        raise NotImplementedError
