# node_admin/api/routes/agents.py
"""Read-only views of the node agents on this host."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from node_admin.api.dependencies import get_orchestrator, get_recorder
from node_admin.core.events import RecordingEventEmitter
from node_admin.orchestrator.host_orchestrator import HostOrchestrator

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentResponse(BaseModel):
    """Agent status response."""
    hostname: str
    container_name: str
    desired_state: Optional[str]
    last_outcome: Optional[str]
    last_tick_at: Optional[str]
    last_error: Optional[str]
    consecutive_failures: int
    ticks: int
    retiring: bool


class EventResponse(BaseModel):
    """Agent event response."""
    event_type: str
    hostname: str
    detail: str
    occurred_at: str


@router.get("", response_model=List[AgentResponse])
def list_agents(orchestrator: HostOrchestrator = Depends(get_orchestrator)):
    return [AgentResponse(**status.to_dict()) for status in orchestrator.statuses()]


@router.get("/{hostname}", response_model=AgentResponse)
def get_agent(hostname: str, orchestrator: HostOrchestrator = Depends(get_orchestrator)):
    agent = orchestrator.agent(hostname)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"No agent for {hostname}")
    return AgentResponse(**agent.status.to_dict())


@router.get("/{hostname}/events", response_model=List[EventResponse])
def get_agent_events(
    hostname: str,
    limit: int = Query(default=50, gt=0, le=1000),
    orchestrator: HostOrchestrator = Depends(get_orchestrator),
    recorder: RecordingEventEmitter = Depends(get_recorder),
):
    if orchestrator.agent(hostname) is None:
        raise HTTPException(status_code=404, detail=f"No agent for {hostname}")
    return [EventResponse(**event.to_dict()) for event in recorder.events_for(hostname, limit=limit)]
