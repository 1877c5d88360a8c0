# node_admin/api/routes/host.py
"""Host-wide status and maintenance controls."""

from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from node_admin.api.dependencies import get_orchestrator
from node_admin.orchestrator.host_orchestrator import HostOrchestrator

router = APIRouter(prefix="/host", tags=["host"])


class HostResponse(BaseModel):
    """Host status response."""
    hostname: str
    suspended: bool
    frozen: bool
    agents: int
    capacity: Dict[str, float]
    allocated: Dict[str, float]
    free: Dict[str, float]


def _host_response(orchestrator: HostOrchestrator) -> HostResponse:
    return HostResponse(
        hostname=orchestrator.host_hostname,
        suspended=orchestrator.suspend_signal.is_suspended(),
        frozen=orchestrator.is_frozen(),
        agents=len(orchestrator.agents()),
        capacity=orchestrator.ledger.capacity.to_dict(),
        allocated=orchestrator.ledger.allocated(),
        free=orchestrator.ledger.free(),
    )


@router.get("", response_model=HostResponse)
def get_host(orchestrator: HostOrchestrator = Depends(get_orchestrator)):
    return _host_response(orchestrator)


@router.post("/suspend", response_model=HostResponse)
def suspend_host(orchestrator: HostOrchestrator = Depends(get_orchestrator)):
    """
    Freeze all agents for host maintenance.

    ``frozen`` in the response turns true once in-flight ticks finished;
    poll ``GET /host`` until it does.
    """
    orchestrator.suspend()
    return _host_response(orchestrator)


@router.post("/resume", response_model=HostResponse)
def resume_host(orchestrator: HostOrchestrator = Depends(get_orchestrator)):
    orchestrator.resume()
    return _host_response(orchestrator)
