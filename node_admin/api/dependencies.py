from fastapi import Request

from node_admin.core.events import RecordingEventEmitter
from node_admin.orchestrator.host_orchestrator import HostOrchestrator


def get_orchestrator(request: Request) -> HostOrchestrator:
    return request.app.state.orchestrator


def get_recorder(request: Request) -> RecordingEventEmitter:
    return request.app.state.recorder
