"""Core domain models for node administration."""

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class NodeState(Enum):
    """Node lifecycle state, as declared by the node repository."""

    PROVISIONED = "provisioned"
    DIRTY = "dirty"
    READY = "ready"
    ACTIVE = "active"
    INACTIVE = "inactive"
    PARKED = "parked"
    FAILED = "failed"


class NodeType(Enum):
    """Role of the node."""

    TENANT = "tenant"
    HOST = "host"
    PROXY = "proxy"
    CONFIG = "config"


# -------------------------
# IMAGES AND NAMES
# -------------------------

EMPTY_VERSION = "0.0.0"


@dataclass(frozen=True)
class DockerImage:
    """Container image reference: [registry/]repository[:tag]."""

    repository: str
    tag: Optional[str] = None

    @classmethod
    def from_string(cls, reference: str) -> "DockerImage":
        if not reference or reference.strip() != reference:
            raise ValueError(f"Invalid image reference: {reference!r}")

        # A ':' before the last '/' belongs to a registry port, not a tag
        slash = reference.rfind("/")
        colon = reference.rfind(":")
        if colon > slash:
            repository, tag = reference[:colon], reference[colon + 1:]
            if not repository or not tag:
                raise ValueError(f"Invalid image reference: {reference!r}")
            return cls(repository=repository, tag=tag)
        return cls(repository=reference)

    def tag_as_version(self) -> str:
        return self.tag or EMPTY_VERSION

    def as_string(self) -> str:
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return self.repository

    def __str__(self) -> str:
        return self.as_string()


_CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9-]+$")


@dataclass(frozen=True)
class ContainerName:
    """Container identity, derived from the node hostname."""

    name: str

    def __post_init__(self):
        if not _CONTAINER_NAME_RE.match(self.name):
            raise ValueError(f"Invalid container name: {self.name!r}")

    @classmethod
    def from_hostname(cls, hostname: str) -> "ContainerName":
        return cls(hostname.split(".", 1)[0])

    def __str__(self) -> str:
        return self.name


# -------------------------
# RESOURCES
# -------------------------

@dataclass(frozen=True)
class ResourceAllocation:
    """vcpus / memory / disk assigned to one container."""

    vcpus: float
    memory_gb: float
    disk_gb: float

    def __post_init__(self):
        for name in ("vcpus", "memory_gb", "disk_gb"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    def __add__(self, other: "ResourceAllocation") -> "ResourceAllocation":
        return ResourceAllocation(
            vcpus=self.vcpus + other.vcpus,
            memory_gb=self.memory_gb + other.memory_gb,
            disk_gb=self.disk_gb + other.disk_gb,
        )

    def fits_within(self, capacity: "ResourceAllocation") -> bool:
        return (
            self.vcpus <= capacity.vcpus and
            self.memory_gb <= capacity.memory_gb and
            self.disk_gb <= capacity.disk_gb
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "vcpus": self.vcpus,
            "memoryGb": self.memory_gb,
            "diskGb": self.disk_gb,
        }


# -------------------------
# NODE SPEC AND ATTRIBUTES
# -------------------------

@dataclass(frozen=True)
class NodeAttributes:
    """Observed facts reported upstream after a successful action."""

    docker_image: Optional[DockerImage] = None
    vespa_version: Optional[str] = None
    restart_generation: Optional[int] = None
    reboot_generation: Optional[int] = None
    # Empty string clears a previously reported fault
    fault: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.docker_image is None and
            self.vespa_version is None and
            self.restart_generation is None and
            self.reboot_generation is None and
            self.fault is None
        )

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        if self.docker_image is not None:
            wire["dockerImage"] = self.docker_image.as_string()
        if self.vespa_version is not None:
            wire["vespaVersion"] = self.vespa_version
        if self.restart_generation is not None:
            wire["restartGeneration"] = self.restart_generation
        if self.reboot_generation is not None:
            wire["rebootGeneration"] = self.reboot_generation
        if self.fault is not None:
            wire["fault"] = self.fault
        return wire


@dataclass(frozen=True)
class NodeSpec:
    """
    Desired state of one node, fetched fresh from the repository every tick.

    Immutable: a new NodeSpec replaces the old one, it is never mutated.
    """

    hostname: str
    state: NodeState
    node_type: NodeType
    resources: ResourceAllocation
    flavor: str = "docker"
    parent_hostname: Optional[str] = None

    wanted_image: Optional[DockerImage] = None
    current_image: Optional[DockerImage] = None
    current_vespa_version: Optional[str] = None

    wanted_restart_generation: int = 0
    current_restart_generation: int = 0
    wanted_reboot_generation: int = 0
    current_reboot_generation: int = 0

    @property
    def container_name(self) -> ContainerName:
        return ContainerName.from_hostname(self.hostname)

    def restart_pending(self) -> bool:
        return self.wanted_restart_generation > self.current_restart_generation

    def reboot_pending(self) -> bool:
        return self.wanted_reboot_generation > self.current_reboot_generation

    def desired(self) -> tuple:
        """The parts of the spec the agent acts on."""
        return (
            self.hostname,
            self.state,
            self.node_type,
            self.resources,
            self.flavor,
            self.wanted_image,
            self.wanted_restart_generation,
            self.wanted_reboot_generation,
        )

    def with_attributes(self, attributes: NodeAttributes) -> "NodeSpec":
        """Spec as the repository holds it after ``attributes`` were reported."""
        changes: Dict[str, Any] = {}
        if attributes.docker_image is not None:
            changes["current_image"] = attributes.docker_image
        if attributes.vespa_version is not None:
            changes["current_vespa_version"] = attributes.vespa_version
        if attributes.restart_generation is not None:
            changes["current_restart_generation"] = attributes.restart_generation
        if attributes.reboot_generation is not None:
            changes["current_reboot_generation"] = attributes.reboot_generation
        return replace(self, **changes)

    def with_state(self, state: NodeState) -> "NodeSpec":
        return replace(self, state=state)


# -------------------------
# RUNTIME OBSERVATIONS
# -------------------------

@dataclass(frozen=True)
class ContainerStatus:
    """What the container runtime reports for one container."""

    name: ContainerName
    image: DockerImage
    state: str
    resources: Optional[ResourceAllocation] = None
    labels: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def running(self) -> bool:
        return self.state == "running"


@dataclass(frozen=True)
class ExecResult:
    """Result of a command executed inside a container."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
