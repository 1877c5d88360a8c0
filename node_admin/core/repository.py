# node_admin/core/repository.py

from abc import ABC, abstractmethod
from typing import List, Optional

from node_admin.core.models import NodeAttributes, NodeSpec, NodeState


class NodeRepository(ABC):
    """
    Client contract for the central node repository.

    Implementations are thin: no retries or backoff. The caller decides
    when to try again.
    """

    @abstractmethod
    def get_node_spec(self, hostname: str) -> Optional[NodeSpec]:
        """
        Fetch the desired spec of a node.
        Returns None if the repository does not know the node.
        """
        raise NotImplementedError

    @abstractmethod
    def list_child_hostnames(self, parent_hostname: str) -> List[str]:
        """
        List the hostnames of the nodes currently assigned to a host.

        A node whose spec cannot be parsed is still listed; fetching its
        spec is what fails.
        """
        raise NotImplementedError

    @abstractmethod
    def update_attributes(self, hostname: str, attributes: NodeAttributes) -> None:
        """
        Report observed attributes of a node.
        """
        raise NotImplementedError

    @abstractmethod
    def set_node_state(self, hostname: str, state: NodeState) -> None:
        """
        Move a node to a new lifecycle state.
        """
        raise NotImplementedError
