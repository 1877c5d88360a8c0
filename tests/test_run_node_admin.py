#tests\test_run_node_admin.py

"""Test the one-shot convergence entry point."""

from node_admin.config import NodeAdminSettings
from node_admin.container import Container
from node_admin.core.errors import RepositoryUnavailable
from node_admin.run_node_admin import run_once


def make_container(repository, runtime, storage):
    settings = NodeAdminSettings(host_hostname="host1.example.com", _env_file=None)
    return Container(settings, runtime=runtime, node_repository=repository, storage=storage)


def test_run_once_converges_assigned_nodes(repository, runtime, storage, node_spec):
    repository.add_node(node_spec())
    container = make_container(repository, runtime, storage)

    failures = run_once(container)

    assert failures == 0
    assert repository.node("node1.example.com").current_image is not None


def test_run_once_counts_failures(repository, runtime, storage, node_spec):
    repository.add_node(node_spec())
    repository.fail_next("get_node_spec", RepositoryUnavailable("down"))
    container = make_container(repository, runtime, storage)

    assert run_once(container) == 1
