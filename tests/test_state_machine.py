#tests\test_state_machine.py

"""Test node state transitions."""

import pytest

from node_admin.core.errors import InvalidStateTransition
from node_admin.core.models import NodeState
from node_admin.core.state_machine import ALLOWED_TRANSITIONS, NodeStateMachine


class TestNodeStateMachine:
    """Test lifecycle rules."""

    def test_every_state_has_transitions(self):
        assert set(ALLOWED_TRANSITIONS) == set(NodeState)

    @pytest.mark.parametrize("current,new_state", [
        (NodeState.DIRTY, NodeState.READY),
        (NodeState.READY, NodeState.ACTIVE),
        (NodeState.ACTIVE, NodeState.INACTIVE),
        (NodeState.INACTIVE, NodeState.ACTIVE),
        (NodeState.ACTIVE, NodeState.DIRTY),
        (NodeState.FAILED, NodeState.DIRTY),
    ])
    def test_allowed(self, current, new_state):
        assert NodeStateMachine.can_transition(current, new_state)
        NodeStateMachine.validate(current, new_state)

    def test_same_state_allowed(self):
        assert NodeStateMachine.can_transition(NodeState.ACTIVE, NodeState.ACTIVE)

    @pytest.mark.parametrize("current,new_state", [
        (NodeState.ACTIVE, NodeState.READY),
        (NodeState.DIRTY, NodeState.ACTIVE),
        (NodeState.PROVISIONED, NodeState.ACTIVE),
        (NodeState.PARKED, NodeState.READY),
    ])
    def test_forbidden(self, current, new_state):
        """Test nodes cannot skip cleaning."""
        assert not NodeStateMachine.can_transition(current, new_state)
        with pytest.raises(InvalidStateTransition):
            NodeStateMachine.validate(current, new_state)

    def test_requires_archive(self):
        assert NodeStateMachine.requires_archive(NodeState.ACTIVE, NodeState.DIRTY)
        assert NodeStateMachine.requires_archive(NodeState.INACTIVE, NodeState.DIRTY)
        assert not NodeStateMachine.requires_archive(NodeState.PROVISIONED, NodeState.DIRTY)
        assert not NodeStateMachine.requires_archive(NodeState.ACTIVE, NodeState.INACTIVE)

    def test_only_active_runs_container(self):
        running = [s for s in NodeState if NodeStateMachine.may_run_container(s)]

        assert running == [NodeState.ACTIVE]
