# node_admin/infrastructure/http/node_repository.py
"""Node repository client over HTTP."""

import logging
from typing import Any, Dict, List, Optional

import requests

from node_admin.core.errors import ConflictError, RepositoryUnavailable
from node_admin.core.models import NodeAttributes, NodeSpec, NodeState
from node_admin.core.repository import NodeRepository
from node_admin.core.schemas import parse_node_hostnames, parse_node_spec

logger = logging.getLogger(__name__)


class HttpNodeRepository(NodeRepository):
    """
    Thin client for the node repository REST API.

    Every request carries the caller-supplied timeout. No retries here:
    a failed call raises RepositoryUnavailable and the agent tries again
    on its next tick.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Base URL of the repository (e.g., "http://config.example.com:4080")
            timeout: Request timeout in seconds
            session: Optional pre-configured session (certificates, headers)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_node_spec(self, hostname: str) -> Optional[NodeSpec]:
        response = self._request("GET", f"/nodes/{hostname}")
        if response.status_code == 404:
            return None
        self._check(response, f"get node {hostname}")
        return parse_node_spec(self._json(response))

    def list_child_hostnames(self, parent_hostname: str) -> List[str]:
        response = self._request("GET", "/nodes", params={"parentHost": parent_hostname})
        self._check(response, f"list nodes of {parent_hostname}")
        return parse_node_hostnames(self._json(response))

    def update_attributes(self, hostname: str, attributes: NodeAttributes) -> None:
        response = self._request(
            "PATCH",
            f"/nodes/{hostname}/attributes",
            json=attributes.to_wire(),
        )
        if response.status_code == 404:
            raise ConflictError(f"Node {hostname} disappeared before attribute update")
        self._check(response, f"update attributes of {hostname}")
        logger.debug(f"[repository] Updated attributes of {hostname}: {attributes.to_wire()}")

    def set_node_state(self, hostname: str, state: NodeState) -> None:
        response = self._request("PATCH", f"/nodes/{hostname}/state/{state.value}")
        if response.status_code == 404:
            raise ConflictError(f"Node {hostname} disappeared before state change")
        if response.status_code == 409:
            raise ConflictError(
                f"Repository refused moving {hostname} to {state.value}: {response.text}"
            )
        self._check(response, f"set state of {hostname}")
        logger.info(f"[repository] Set {hostname} to {state.value}")

    # ============================================
    # HELPERS
    # ============================================

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise RepositoryUnavailable(f"{method} {url} timed out after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise RepositoryUnavailable(f"Cannot connect to node repository at {self.base_url}") from e
        except requests.exceptions.RequestException as e:
            raise RepositoryUnavailable(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _check(response: requests.Response, action: str) -> None:
        if not 200 <= response.status_code < 300:
            raise RepositoryUnavailable(
                f"Failed to {action} [{response.status_code}]: {response.text}"
            )

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise RepositoryUnavailable(f"Node repository returned invalid JSON: {e}") from e
