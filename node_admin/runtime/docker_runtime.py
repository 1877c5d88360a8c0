# node_admin/runtime/docker_runtime.py
"""ContainerRuntime backed by the local Docker daemon."""

import logging
from pathlib import Path
from typing import Dict, Optional

import docker
import requests
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from node_admin.core.errors import (
    ConflictError,
    ImageInvalid,
    ResourceExceeded,
    RuntimeUnavailable,
)
from node_admin.core.models import (
    ContainerName,
    ContainerStatus,
    DockerImage,
    ExecResult,
    ResourceAllocation,
)
from node_admin.runtime.base import ContainerRuntime

logger = logging.getLogger(__name__)


MANAGED_BY_LABEL = "managed_by"
MANAGED_BY = "node_admin"
VCPUS_LABEL = "node_admin.vcpus"
MEMORY_LABEL = "node_admin.memory_gb"
DISK_LABEL = "node_admin.disk_gb"


class DockerContainerRuntime(ContainerRuntime):
    """
    Docker binding of the container runtime capability.

    Every container gets its node's storage directory bind-mounted at
    ``data_mount`` when ``storage_root`` is set.
    """

    def __init__(
        self,
        client: Optional[docker.DockerClient] = None,
        *,
        base_url: Optional[str] = None,
        timeout: int = 60,
        stop_timeout: int = 10,
        storage_root: Optional[Path] = None,
        data_mount: str = "/data",
    ):
        if client is None:
            try:
                if base_url:
                    client = docker.DockerClient(base_url=base_url, timeout=timeout)
                else:
                    client = docker.from_env(timeout=timeout)
            except DockerException as e:
                raise RuntimeUnavailable(f"Failed to connect to Docker: {e}") from e
        self._client = client
        self._stop_timeout = stop_timeout
        self._storage_root = Path(storage_root) if storage_root else None
        self._data_mount = data_mount

    # ============================================
    # IMAGES
    # ============================================

    def pull_image(self, image: DockerImage) -> None:
        try:
            self._client.images.get(image.as_string())
            return
        except ImageNotFound:
            pass
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"inspect image {image}")

        logger.info(f"[runtime] Pulling image: {image}")
        try:
            self._client.images.pull(image.repository, tag=image.tag or "latest")
        except NotFound as e:
            raise ImageInvalid(f"Image not found: {image}") from e
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"pull {image}")
        logger.info(f"[runtime] ✅ Image pulled: {image}")

    # ============================================
    # CONTAINER LIFECYCLE
    # ============================================

    def create_container(
        self,
        image: DockerImage,
        name: ContainerName,
        resources: ResourceAllocation,
    ) -> ContainerStatus:
        existing = self.inspect(name)
        if existing is not None:
            if existing.image == image:
                return existing
            raise ConflictError(
                f"Container {name} already exists with image {existing.image}, wanted {image}"
            )

        container_config = {
            "image": image.as_string(),
            "name": name.name,
            "hostname": name.name,
            "detach": True,
            "nano_cpus": int(resources.vcpus * 1_000_000_000),
            "mem_limit": f"{int(resources.memory_gb * 1024)}m",
            "labels": {
                MANAGED_BY_LABEL: MANAGED_BY,
                VCPUS_LABEL: str(resources.vcpus),
                MEMORY_LABEL: str(resources.memory_gb),
                DISK_LABEL: str(resources.disk_gb),
            },
        }

        if self._storage_root is not None:
            live = self._storage_root / name.name
            live.mkdir(parents=True, exist_ok=True)
            container_config["volumes"] = {
                str(live): {"bind": self._data_mount, "mode": "rw"}
            }

        logger.info(f"[runtime] Creating container: {name} ({image})")
        try:
            container = self._client.containers.create(**container_config)
        except ImageNotFound as e:
            raise ImageInvalid(f"Image not found: {image}") from e
        except APIError as e:
            if e.status_code == 409:
                # Name taken between inspect and create
                raced = self.inspect(name)
                if raced is not None and raced.image == image:
                    return raced
                raise ConflictError(f"Container name {name} is already in use") from e
            if e.status_code == 400 and "memory" in str(e).lower():
                raise ResourceExceeded(f"Docker rejected resources for {name}: {e}") from e
            raise _translate(e, f"create {name}")
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"create {name}")

        logger.info(f"[runtime] ✅ Container created: {container.id[:12]}")
        return _status(name, container)

    def start(self, name: ContainerName) -> None:
        container = self._get(name)
        if container is None:
            raise ConflictError(f"Cannot start missing container {name}")
        if container.status == "paused":
            self._call(container.unpause, f"unpause {name}")
        elif container.status != "running":
            self._call(container.start, f"start {name}")

    def stop(self, name: ContainerName) -> None:
        container = self._get(name)
        if container is None or container.status not in ("running", "paused", "restarting"):
            return
        try:
            container.stop(timeout=self._stop_timeout)
        except NotFound:
            return
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"stop {name}")

    def remove(self, name: ContainerName) -> None:
        container = self._get(name)
        if container is None:
            return
        try:
            container.remove(force=True)
        except NotFound:
            return
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"remove {name}")

    def exec_as_user(self, name: ContainerName, user: str, *command: str) -> ExecResult:
        container = self._get(name)
        if container is None:
            raise ConflictError(f"Cannot exec in missing container {name}")
        try:
            exit_code, output = container.exec_run(list(command), user=user)
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"exec in {name}")
        if isinstance(output, bytes):
            output = output.decode("utf-8", errors="replace")
        return ExecResult(exit_code=exit_code if exit_code is not None else 0, output=output or "")

    def inspect(self, name: ContainerName) -> Optional[ContainerStatus]:
        container = self._get(name)
        if container is None:
            return None
        return _status(name, container)

    # ============================================
    # HELPERS
    # ============================================

    def _get(self, name: ContainerName):
        try:
            return self._client.containers.get(name.name)
        except NotFound:
            return None
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, f"inspect {name}")

    def _call(self, fn, action: str) -> None:
        try:
            fn()
        except (DockerException, requests.exceptions.RequestException) as e:
            raise _translate(e, action)


def _translate(error: Exception, action: str) -> Exception:
    logger.warning(f"[runtime] Docker error during {action}: {error}")
    return RuntimeUnavailable(f"Docker error during {action}: {error}")


def _status(name: ContainerName, container) -> ContainerStatus:
    labels: Dict[str, str] = container.labels or {}
    image_ref = container.attrs.get("Config", {}).get("Image") or "unknown"
    resources = None
    try:
        resources = ResourceAllocation(
            vcpus=float(labels[VCPUS_LABEL]),
            memory_gb=float(labels[MEMORY_LABEL]),
            disk_gb=float(labels[DISK_LABEL]),
        )
    except (KeyError, ValueError):
        pass
    return ContainerStatus(
        name=name,
        image=DockerImage.from_string(image_ref),
        state=container.status,
        resources=resources,
        labels=dict(labels),
    )
