# node_admin/agent/node_agent.py
"""NodeAgent - converges one node's container towards its declared state."""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from node_admin.agent.context import NodeAgentContext
from node_admin.core.errors import (
    ConflictError,
    ContainerCommandFailed,
    ImageInvalid,
    InvalidStateTransition,
    NodeAdminError,
    NonRetryableError,
    StorageFault,
    TransientError,
)
from node_admin.core.events import EventEmitter, NodeEvent, NullEventEmitter
from node_admin.core.models import (
    ContainerStatus,
    NodeAttributes,
    NodeSpec,
    NodeState,
)
from node_admin.core.repository import NodeRepository
from node_admin.core.state_machine import NodeStateMachine
from node_admin.orchestrator.registry import ContainerNameRegistry, ResourceLedger
from node_admin.runtime.base import ContainerRuntime
from node_admin.storage.maintainer import StorageMaintainer

logger = logging.getLogger(__name__)


NODE_PROGRAM = "/opt/node-admin/bin/node-program"
HOOK_USER = "root"


class TickOutcome(Enum):
    """Result of one convergence tick."""

    CONVERGED = "converged"
    SKIPPED = "skipped"
    SUSPENDED = "suspended"
    NOT_FOUND = "not_found"
    TRANSIENT_FAILURE = "transient_failure"
    CONFLICT = "conflict"
    FAULT = "fault"
    STORAGE_FAULT = "storage_fault"
    ERROR = "error"

    @property
    def failed(self) -> bool:
        return self in _FAILED_OUTCOMES


_FAILED_OUTCOMES = {
    TickOutcome.TRANSIENT_FAILURE,
    TickOutcome.CONFLICT,
    TickOutcome.FAULT,
    TickOutcome.STORAGE_FAULT,
    TickOutcome.ERROR,
}


@dataclass(frozen=True)
class AgentStatus:
    """Snapshot of an agent, safe to read from other threads."""

    hostname: str
    container_name: str
    desired_state: Optional[NodeState] = None
    last_outcome: Optional[TickOutcome] = None
    last_tick_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    ticks: int = 0
    retiring: bool = False

    def to_dict(self) -> Dict:
        return {
            "hostname": self.hostname,
            "container_name": self.container_name,
            "desired_state": self.desired_state.value if self.desired_state else None,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
            "ticks": self.ticks,
            "retiring": self.retiring,
        }


class AgentSuspended(Exception):
    """Raised at a safe point when the host is suspended."""
    pass


class NodeAgent:
    """
    Level-triggered reconciler for one node.

    Every tick re-reads the node's spec and the container's actual state
    and applies the smallest set of actions that closes the gap. Nothing
    is carried over from earlier ticks except the spec the agent expects
    to see if nothing changed, which lets an unchanged node skip all
    runtime calls.
    """

    def __init__(
        self,
        *,
        hostname: str,
        node_repository: NodeRepository,
        runtime: ContainerRuntime,
        storage: StorageMaintainer,
        name_registry: ContainerNameRegistry,
        ledger: ResourceLedger,
        is_suspended: Callable[[], bool] = lambda: False,
        emitter: Optional[EventEmitter] = None,
        full_reconcile_every: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.context = NodeAgentContext.for_hostname(hostname)
        self._repo = node_repository
        self._runtime = runtime
        self._storage = storage
        self._registry = name_registry
        self._ledger = ledger
        self._is_suspended = is_suspended
        self._emitter = emitter or NullEventEmitter()
        self._full_reconcile_every = full_reconcile_every
        self._clock = clock

        self._expected_spec: Optional[NodeSpec] = None
        self._ticks_since_full = 0
        self._reported_fault: Optional[str] = None
        self._retiring = False
        self._retired = False
        self._retire_lock = threading.Lock()
        # Set when the container was (re)started and its resume hook has not succeeded yet
        self._resume_pending = False
        self._status = AgentStatus(
            hostname=hostname,
            container_name=self.context.container_name.name,
        )

    @property
    def hostname(self) -> str:
        return self.context.hostname

    @property
    def container_name(self):
        return self.context.container_name

    @property
    def status(self) -> AgentStatus:
        return self._status

    @property
    def retiring(self) -> bool:
        return self._retiring

    @property
    def retired(self) -> bool:
        """True once a retiring agent has torn its container down."""
        return self._retired

    def retire(self) -> None:
        """Node was reassigned away: next ticks tear its container down."""
        with self._retire_lock:
            if not self._retiring:
                logger.info(f"{self._prefix} Retiring")
            self._retiring = True
            self._expected_spec = None
            self._status = replace(self._status, retiring=True)

    def unretire(self) -> None:
        """Node was assigned back before its agent was dropped: converge it again."""
        with self._retire_lock:
            if self._retiring:
                logger.info(f"{self._prefix} Assigned back, no longer retiring")
            self._retiring = False
            self._retired = False
            self._expected_spec = None
            self._status = replace(self._status, retiring=False)

    # ============================================
    # TICK
    # ============================================

    def tick(self) -> TickOutcome:
        """Run one convergence pass. Never raises."""
        error = None
        spec_state = self._status.desired_state
        try:
            outcome, spec_state = self._tick()
        except AgentSuspended:
            logger.info(f"{self._prefix} Host suspended, stopping at safe point")
            outcome = TickOutcome.SUSPENDED
        except TransientError as e:
            logger.warning(f"{self._prefix} Transient failure, retrying next tick: {e}")
            outcome, error = TickOutcome.TRANSIENT_FAILURE, str(e)
        except (ConflictError, InvalidStateTransition) as e:
            logger.info(f"{self._prefix} Desired state changed, abandoning tick: {e}")
            outcome, error = TickOutcome.CONFLICT, str(e)
        except NonRetryableError as e:
            logger.error(f"{self._prefix} ❌ {type(e).__name__}: {e}")
            self._report_fault(str(e))
            outcome, error = TickOutcome.FAULT, str(e)
        except StorageFault as e:
            logger.error(f"{self._prefix} ❌ Storage fault, node stays dirty: {e}")
            outcome, error = TickOutcome.STORAGE_FAULT, str(e)
        except Exception as e:
            logger.error(f"{self._prefix} Unexpected error in tick: {e}", exc_info=True)
            outcome, error = TickOutcome.ERROR, str(e)

        if outcome not in (TickOutcome.CONVERGED, TickOutcome.SKIPPED):
            self._expected_spec = None

        self._status = replace(
            self._status,
            desired_state=spec_state,
            last_outcome=outcome,
            last_tick_at=self._clock(),
            last_error=error,
            consecutive_failures=self._status.consecutive_failures + 1 if outcome.failed else 0,
            ticks=self._status.ticks + 1,
        )
        return outcome

    def _tick(self):
        self._checkpoint()
        if self._retiring:
            self._converge_retiring()
            return TickOutcome.CONVERGED, None

        spec = self._repo.get_node_spec(self.hostname)
        if spec is None:
            logger.info(f"{self._prefix} Node not found in repository")
            return TickOutcome.NOT_FOUND, None

        if spec == self._expected_spec and not self._full_reconcile_due():
            self._ticks_since_full += 1
            return TickOutcome.SKIPPED, spec.state

        self._ticks_since_full = 0
        self._checkpoint()
        # Whatever runs under this name belongs to the claim holder
        self._registry.claim(self.container_name, self.hostname)
        status = self._runtime.inspect(self.container_name)

        if NodeStateMachine.may_run_container(spec.state):
            expected = self._converge_active(spec, status)
        elif spec.state == NodeState.DIRTY:
            expected = self._converge_dirty(spec, status)
        elif spec.state == NodeState.INACTIVE:
            expected = self._converge_inactive(spec, status)
        else:
            expected = self._ensure_absent(spec, status)

        self._clear_fault()
        self._expected_spec = expected
        return TickOutcome.CONVERGED, spec.state

    def _full_reconcile_due(self) -> bool:
        return self._ticks_since_full + 1 >= self._full_reconcile_every

    # ============================================
    # PER-STATE CONVERGENCE
    # ============================================

    def _converge_active(self, spec: NodeSpec, status: Optional[ContainerStatus]) -> NodeSpec:
        image = spec.wanted_image
        if image is None:
            raise ImageInvalid(f"Node {self.hostname} is active but has no wanted image")

        # Anything that can fail permanently happens before touching the container
        self._ledger.allocate(self.container_name, spec.resources)
        if status is None or status.image != image:
            self._runtime.pull_image(image)

        started = False
        if status is not None and status.image != image:
            logger.info(f"{self._prefix} Image changed {status.image} -> {image}, replacing container")
            self._verify_unchanged(spec)
            self._remove_container(status)
            status = None

        if status is None:
            self._checkpoint()
            with self._registry.mutating(self.container_name, self.hostname):
                self._runtime.create_container(image, self.container_name, spec.resources)
                self._emit("container.created", f"image={image}")
                self._runtime.start(self.container_name)
            self._resume_pending = True
            started = True
        elif not status.running:
            self._checkpoint()
            with self._registry.mutating(self.container_name, self.hostname):
                self._runtime.start(self.container_name)
            self._emit("container.started")
            self._resume_pending = True
            started = True

        if self._resume_pending:
            self._resume()

        restart_generation = None
        if spec.restart_pending():
            if not started:
                self._checkpoint()
                self._run_hook("restart")
                self._emit("node.restarted", f"generation={spec.wanted_restart_generation}")
            restart_generation = spec.wanted_restart_generation

        reboot_generation = None
        if spec.reboot_pending():
            if not started:
                self._checkpoint()
                with self._registry.mutating(self.container_name, self.hostname):
                    self._runtime.stop(self.container_name)
                    self._runtime.start(self.container_name)
                self._resume_pending = True
                self._resume()
                self._emit("node.rebooted", f"generation={spec.wanted_reboot_generation}")
            reboot_generation = spec.wanted_reboot_generation

        version = image.tag_as_version()
        attributes = NodeAttributes(
            docker_image=image if spec.current_image != image else None,
            vespa_version=version if spec.current_vespa_version != version else None,
            restart_generation=restart_generation,
            reboot_generation=reboot_generation,
        )
        if attributes.is_empty():
            return spec

        self._repo.update_attributes(self.hostname, attributes)
        self._emit("attributes.updated", str(attributes.to_wire()))
        return spec.with_attributes(attributes)

    def _converge_dirty(self, spec: NodeSpec, status: Optional[ContainerStatus]) -> NodeSpec:
        previous = self._status.desired_state
        if previous is not None and NodeStateMachine.requires_archive(previous, spec.state):
            logger.info(f"{self._prefix} Node left {previous.value}, archiving its data")

        if status is not None:
            self._verify_unchanged(spec)
            self._remove_container(status)
        self._ledger.release(self.container_name)

        self._checkpoint()
        archive = self._storage.archive_node_storage(self.context)
        self._emit("storage.archived", str(archive) if archive else "nothing to archive")

        # Only ever reached after archiving completed
        self._verify_unchanged(spec)
        self._checkpoint()
        self._repo.set_node_state(self.hostname, NodeState.READY)
        self._emit("state.updated", NodeState.READY.value)
        self._registry.release(self.container_name, self.hostname)
        return spec.with_state(NodeState.READY)

    def _converge_inactive(self, spec: NodeSpec, status: Optional[ContainerStatus]) -> NodeSpec:
        if status is not None and status.running:
            self._checkpoint()
            with self._registry.mutating(self.container_name, self.hostname):
                self._runtime.stop(self.container_name)
            self._emit("container.stopped")
        self._ledger.release(self.container_name)
        return spec

    def _ensure_absent(self, spec: NodeSpec, status: Optional[ContainerStatus]) -> NodeSpec:
        if status is not None:
            logger.info(f"{self._prefix} Node is {spec.state.value}, removing container")
            self._verify_unchanged(spec)
            self._remove_container(status)
        self._ledger.release(self.container_name)
        self._registry.release(self.container_name, self.hostname)
        return spec

    def _converge_retiring(self) -> None:
        self._checkpoint()
        status = self._runtime.inspect(self.container_name)
        if status is not None:
            self._verify_still_retiring()
            self._remove_container(status)
        self._ledger.release(self.container_name)

        self._checkpoint()
        self._verify_still_retiring()
        archive = self._storage.archive_node_storage(self.context)
        if archive:
            self._emit("storage.archived", str(archive))
        self._registry.release(self.container_name, self.hostname)
        with self._retire_lock:
            self._retired = self._retiring

    def _verify_still_retiring(self) -> None:
        if not self._retiring:
            raise ConflictError(f"{self.hostname} was assigned back while retiring")

    # ============================================
    # HELPERS
    # ============================================

    def _remove_container(self, status: ContainerStatus) -> None:
        self._checkpoint()
        with self._registry.mutating(self.container_name, self.hostname):
            if status.running:
                self._runtime.stop(self.container_name)
            self._runtime.remove(self.container_name)
        self._emit("container.removed", f"image={status.image}")

    def _resume(self) -> None:
        self._run_hook("resume")
        self._resume_pending = False
        self._emit("container.resumed")

    def _run_hook(self, command: str) -> None:
        result = self._runtime.exec_as_user(self.container_name, HOOK_USER, NODE_PROGRAM, command)
        if not result.ok:
            raise ContainerCommandFailed(
                self.container_name.name,
                (NODE_PROGRAM, command),
                result.exit_code,
                result.output,
            )

    def _verify_unchanged(self, spec: NodeSpec) -> None:
        """Re-read the spec before a destructive step."""
        fresh = self._repo.get_node_spec(self.hostname)
        if fresh is None or fresh.desired() != spec.desired():
            raise ConflictError(f"Spec of {self.hostname} changed during tick")

    def _checkpoint(self) -> None:
        if self._is_suspended():
            raise AgentSuspended()

    def _report_fault(self, message: str) -> None:
        if message == self._reported_fault:
            return
        try:
            self._repo.update_attributes(self.hostname, NodeAttributes(fault=message))
        except NodeAdminError as e:
            logger.warning(f"{self._prefix} Failed to report fault: {e}")
            return
        self._reported_fault = message
        self._emit("agent.fault", message)

    def _clear_fault(self) -> None:
        if self._reported_fault is None:
            return
        self._repo.update_attributes(self.hostname, NodeAttributes(fault=""))
        self._reported_fault = None

    def _emit(self, event_type: str, detail: str = "") -> None:
        self._emitter.emit([NodeEvent(event_type=event_type, hostname=self.hostname, detail=detail)])

    @property
    def _prefix(self) -> str:
        return self.context.log_prefix()

    def __repr__(self) -> str:
        return f"<NodeAgent(hostname={self.hostname}, container={self.container_name})>"
