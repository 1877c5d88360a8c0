"""Per-node identity shared by an agent and the collaborators it calls."""

from dataclasses import dataclass

from node_admin.core.models import ContainerName, NodeType


@dataclass(frozen=True)
class NodeAgentContext:
    hostname: str
    container_name: ContainerName
    node_type: NodeType = NodeType.TENANT

    @classmethod
    def for_hostname(cls, hostname: str, node_type: NodeType = NodeType.TENANT) -> "NodeAgentContext":
        return cls(
            hostname=hostname,
            container_name=ContainerName.from_hostname(hostname),
            node_type=node_type,
        )

    def log_prefix(self) -> str:
        return f"[agent {self.container_name}]"
