#node_admin\core\state_machine.py

from node_admin.core.errors import InvalidStateTransition
from node_admin.core.models import NodeState


ALLOWED_TRANSITIONS = {
    NodeState.PROVISIONED: {
        NodeState.DIRTY,
        NodeState.PARKED,
        NodeState.FAILED,
    },
    NodeState.DIRTY: {
        NodeState.READY,
        NodeState.PARKED,
        NodeState.FAILED,
    },
    NodeState.READY: {
        NodeState.ACTIVE,
        NodeState.DIRTY,
        NodeState.PARKED,
        NodeState.FAILED,
    },
    NodeState.ACTIVE: {
        NodeState.INACTIVE,
        NodeState.DIRTY,
        NodeState.PARKED,
        NodeState.FAILED,
    },
    NodeState.INACTIVE: {
        NodeState.ACTIVE,
        NodeState.DIRTY,
        NodeState.PARKED,
        NodeState.FAILED,
    },
    NodeState.PARKED: {
        NodeState.DIRTY,
        NodeState.FAILED,
    },
    NodeState.FAILED: {
        NodeState.DIRTY,
        NodeState.PARKED,
    },
}

# Leaving one of these for dirty means tenant data may be on local disk
_HOLDS_TENANT_DATA = {
    NodeState.ACTIVE,
    NodeState.INACTIVE,
    NodeState.READY,
}


class NodeStateMachine:
    @staticmethod
    def can_transition(current: NodeState, new_state: NodeState) -> bool:
        if current == new_state:
            return True
        return new_state in ALLOWED_TRANSITIONS.get(current, set())

    @staticmethod
    def validate(current: NodeState, new_state: NodeState) -> None:
        if not NodeStateMachine.can_transition(current, new_state):
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {new_state.value}"
            )

    @staticmethod
    def requires_archive(previous: NodeState, new_state: NodeState) -> bool:
        return new_state == NodeState.DIRTY and previous in _HOLDS_TENANT_DATA

    @staticmethod
    def may_run_container(state: NodeState) -> bool:
        return state == NodeState.ACTIVE
