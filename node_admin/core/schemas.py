"""Pydantic schemas for node repository documents."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from node_admin.core.errors import InvalidNodeSpec
from node_admin.core.models import (
    DockerImage,
    NodeSpec,
    NodeState,
    NodeType,
    ResourceAllocation,
)

logger = logging.getLogger(__name__)


# ============================================
# Node documents
# ============================================

class NodeSpecDocument(BaseModel):
    """``GET /nodes/{hostname}`` response body."""

    hostname: str = Field(..., min_length=1)
    state: NodeState
    node_type: NodeType = Field(default=NodeType.TENANT, alias="type")
    flavor: str = "docker"
    parent_hostname: Optional[str] = Field(default=None, alias="parentHostname")

    wanted_docker_image: Optional[str] = Field(default=None, alias="wantedDockerImage")
    current_docker_image: Optional[str] = Field(default=None, alias="currentDockerImage")
    vespa_version: Optional[str] = Field(default=None, alias="vespaVersion")

    vcpus: float = Field(..., gt=0)
    memory_gb: float = Field(..., gt=0, alias="memoryGb")
    disk_gb: float = Field(..., gt=0, alias="diskGb")

    wanted_restart_generation: int = Field(default=0, ge=0, alias="wantedRestartGeneration")
    current_restart_generation: int = Field(default=0, ge=0, alias="currentRestartGeneration")
    wanted_reboot_generation: int = Field(default=0, ge=0, alias="wantedRebootGeneration")
    current_reboot_generation: int = Field(default=0, ge=0, alias="currentRebootGeneration")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_domain(self) -> NodeSpec:
        return NodeSpec(
            hostname=self.hostname,
            state=self.state,
            node_type=self.node_type,
            flavor=self.flavor,
            parent_hostname=self.parent_hostname,
            resources=ResourceAllocation(
                vcpus=self.vcpus,
                memory_gb=self.memory_gb,
                disk_gb=self.disk_gb,
            ),
            wanted_image=_image(self.wanted_docker_image),
            current_image=_image(self.current_docker_image),
            current_vespa_version=self.vespa_version,
            wanted_restart_generation=self.wanted_restart_generation,
            current_restart_generation=self.current_restart_generation,
            wanted_reboot_generation=self.wanted_reboot_generation,
            current_reboot_generation=self.current_reboot_generation,
        )

    @classmethod
    def from_domain(cls, spec: NodeSpec) -> "NodeSpecDocument":
        return cls(
            hostname=spec.hostname,
            state=spec.state,
            node_type=spec.node_type,
            flavor=spec.flavor,
            parent_hostname=spec.parent_hostname,
            wanted_docker_image=_image_string(spec.wanted_image),
            current_docker_image=_image_string(spec.current_image),
            vespa_version=spec.current_vespa_version,
            vcpus=spec.resources.vcpus,
            memory_gb=spec.resources.memory_gb,
            disk_gb=spec.resources.disk_gb,
            wanted_restart_generation=spec.wanted_restart_generation,
            current_restart_generation=spec.current_restart_generation,
            wanted_reboot_generation=spec.wanted_reboot_generation,
            current_reboot_generation=spec.current_reboot_generation,
        )


class NodeListEntry(BaseModel):
    """Entry of ``GET /nodes?parentHost=...``. Discovery only needs the hostname."""

    hostname: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore")


def _image(reference: Optional[str]) -> Optional[DockerImage]:
    if not reference:
        return None
    return DockerImage.from_string(reference)


def _image_string(image: Optional[DockerImage]) -> Optional[str]:
    return image.as_string() if image else None


def parse_node_spec(document: Dict[str, Any]) -> NodeSpec:
    """Validate a repository document and convert it to a NodeSpec."""
    try:
        return NodeSpecDocument.model_validate(document).to_domain()
    except (ValidationError, ValueError) as e:
        hostname = document.get("hostname") if isinstance(document, dict) else None
        raise InvalidNodeSpec(f"Invalid node document for {hostname}: {e}") from e


def parse_node_hostnames(document: Dict[str, Any]) -> List[str]:
    """
    Hostnames listed in a node list document.

    Entries are validated one by one. An entry without a usable hostname is
    logged and skipped; a listed node with a broken spec is still returned,
    its agent reports the broken spec as its own fault.
    """
    nodes = document.get("nodes", []) if isinstance(document, dict) else None
    if not isinstance(nodes, list):
        raise InvalidNodeSpec(f"Invalid node list document: {document!r}")

    hostnames = []
    for entry in nodes:
        try:
            hostnames.append(NodeListEntry.model_validate(entry).hostname)
        except ValidationError as e:
            logger.warning(f"[repository] Skipping node list entry without hostname: {e}")
    return hostnames
