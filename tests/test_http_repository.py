#tests\test_http_repository.py

"""Test the HTTP node repository client."""

from unittest.mock import MagicMock

import pytest
import requests

from node_admin.core.errors import ConflictError, InvalidNodeSpec, RepositoryUnavailable
from node_admin.core.models import DockerImage, NodeAttributes, NodeState
from node_admin.core.schemas import NodeSpecDocument
from node_admin.infrastructure.http.node_repository import HttpNodeRepository


BASE_URL = "http://config.example.com:4080"
NODE = "node1.example.com"


def response(status_code=200, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = body
    return resp


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return HttpNodeRepository(BASE_URL + "/", timeout=2.5, session=session)


@pytest.fixture
def node_document(node_spec):
    return NodeSpecDocument.from_domain(node_spec()).model_dump(by_alias=True, mode="json")


class TestReads:
    """Test fetching node specs."""

    def test_get_node_spec(self, client, session, node_document, node_spec):
        session.request.return_value = response(body=node_document)

        spec = client.get_node_spec(NODE)

        assert spec == node_spec()
        session.request.assert_called_once_with("GET", f"{BASE_URL}/nodes/{NODE}", timeout=2.5)

    def test_missing_node(self, client, session):
        session.request.return_value = response(404)

        assert client.get_node_spec(NODE) is None

    def test_list_child_hostnames(self, client, session, node_document):
        broken = dict(node_document, hostname="node2.example.com", vcpus=0)
        session.request.return_value = response(body={"nodes": [node_document, broken, {"state": "active"}]})

        hostnames = client.list_child_hostnames("host1.example.com")

        assert hostnames == [NODE, "node2.example.com"]
        session.request.assert_called_once_with(
            "GET", f"{BASE_URL}/nodes", timeout=2.5, params={"parentHost": "host1.example.com"}
        )

    def test_invalid_document(self, client, session):
        session.request.return_value = response(body={"hostname": NODE, "state": "exploded"})

        with pytest.raises(InvalidNodeSpec):
            client.get_node_spec(NODE)

    def test_invalid_json(self, client, session):
        resp = response()
        resp.json.side_effect = ValueError("Expecting value")
        session.request.return_value = resp

        with pytest.raises(RepositoryUnavailable):
            client.get_node_spec(NODE)


class TestWrites:
    """Test reporting attributes and state."""

    def test_update_attributes(self, client, session):
        session.request.return_value = response(200)
        attributes = NodeAttributes(docker_image=DockerImage.from_string("vespa/node:8.1.2"), vespa_version="8.1.2")

        client.update_attributes(NODE, attributes)

        session.request.assert_called_once_with(
            "PATCH",
            f"{BASE_URL}/nodes/{NODE}/attributes",
            timeout=2.5,
            json={"dockerImage": "vespa/node:8.1.2", "vespaVersion": "8.1.2"},
        )

    def test_update_attributes_of_missing_node(self, client, session):
        session.request.return_value = response(404)

        with pytest.raises(ConflictError):
            client.update_attributes(NODE, NodeAttributes(fault=""))

    def test_set_node_state(self, client, session):
        session.request.return_value = response(200)

        client.set_node_state(NODE, NodeState.READY)

        session.request.assert_called_once_with("PATCH", f"{BASE_URL}/nodes/{NODE}/state/ready", timeout=2.5)

    def test_set_node_state_refused(self, client, session):
        session.request.return_value = response(409, text="node is active")

        with pytest.raises(ConflictError):
            client.set_node_state(NODE, NodeState.READY)


class TestFailures:
    """Test transport errors become RepositoryUnavailable."""

    @pytest.mark.parametrize("error", [
        requests.exceptions.Timeout("read timed out"),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.RequestException("boom"),
    ])
    def test_transport_errors(self, client, session, error):
        session.request.side_effect = error

        with pytest.raises(RepositoryUnavailable):
            client.get_node_spec(NODE)

    def test_server_error(self, client, session):
        session.request.return_value = response(503, text="unavailable")

        with pytest.raises(RepositoryUnavailable) as exc_info:
            client.list_child_hostnames("host1.example.com")

        assert "503" in str(exc_info.value)
