# node_admin/orchestrator/host_orchestrator.py
"""HostOrchestrator - owns the node agents of one host."""

import logging
import random
import threading
from typing import Dict, List, Optional

from node_admin.agent.node_agent import AgentStatus, NodeAgent, TickOutcome
from node_admin.core.errors import NodeAdminError, TransientError
from node_admin.core.events import EventEmitter, NullEventEmitter
from node_admin.core.models import ResourceAllocation
from node_admin.core.repository import NodeRepository
from node_admin.orchestrator.config import SchedulerConfig
from node_admin.orchestrator.registry import ContainerNameRegistry, ResourceLedger
from node_admin.orchestrator.scheduler import (
    AgentWorker,
    BackoffPolicy,
    InFlightTicks,
    SuspendSignal,
)
from node_admin.runtime.base import ContainerRuntime
from node_admin.storage.maintainer import StorageMaintainer

logger = logging.getLogger(__name__)


class HostOrchestrator:
    """
    Keeps one NodeAgent per node assigned to this host.

    - Discovers assigned nodes from the repository every refresh interval
    - Runs each agent on its own worker thread
    - Owns the shared container-name registry and resource ledger
    - Suspends and resumes all ticking for host maintenance
    """

    def __init__(
        self,
        *,
        host_hostname: str,
        node_repository: NodeRepository,
        runtime: ContainerRuntime,
        storage: StorageMaintainer,
        capacity: ResourceAllocation,
        config: Optional[SchedulerConfig] = None,
        emitter: Optional[EventEmitter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.host_hostname = host_hostname
        self.config = config or SchedulerConfig()
        self._repo = node_repository
        self._runtime = runtime
        self._storage = storage
        self._emitter = emitter or NullEventEmitter()
        self._rng = rng or random.Random()

        self.name_registry = ContainerNameRegistry()
        self.ledger = ResourceLedger(capacity)
        self.suspend_signal = SuspendSignal()
        self._in_flight = InFlightTicks()

        self._workers: Dict[str, AgentWorker] = {}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._started = False

    # ============================================
    # LIFECYCLE
    # ============================================

    def start(self) -> None:
        """Start assignment refresh and all agent workers."""
        logger.info(f"[orchestrator {self.host_hostname}] 🚀 Starting")
        logger.info(f"[orchestrator] Tick interval: {self.config.tick_interval_seconds}s")
        logger.info(f"[orchestrator] Refresh interval: {self.config.refresh_interval_seconds}s")
        logger.info(f"[orchestrator] Capacity: {self.ledger.capacity.to_dict()}")

        with self._lock:
            self._started = True
            for worker in self._workers.values():
                worker.start()

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="orchestrator", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        logger.info(f"[orchestrator {self.host_hostname}] Stopping")
        self._stop_event.set()
        if self._thread:
            self._thread.join()
        with self._lock:
            self._started = False
            workers = list(self._workers.values())
        for worker in workers:
            worker.stop()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            if not self.suspend_signal.is_suspended():
                try:
                    self.refresh_assignments()
                except TransientError as e:
                    logger.warning(f"[orchestrator] Failed to refresh assignments: {e}")
                except Exception as e:
                    logger.error(f"[orchestrator] Error in refresh loop: {e}", exc_info=True)
                self.run_maintenance()

            self._stop_event.wait(self.config.refresh_interval_seconds)

    # ============================================
    # AGENTS
    # ============================================

    def refresh_assignments(self) -> None:
        """Start agents for new nodes and retire agents for nodes moved away."""
        assigned = set(self._repo.list_child_hostnames(self.host_hostname))

        with self._lock:
            current = dict(self._workers)

        for hostname in sorted(assigned - set(current)):
            self.add_agent(hostname)

        # remove_agent inspects the runtime, so no lock is held here
        for hostname, worker in sorted(current.items()):
            agent = worker.agent
            if hostname not in assigned:
                agent.retire()
            elif agent.retiring:
                logger.info(f"[orchestrator] {hostname} assigned here again, keeping its agent")
                agent.unretire()
            if agent.retired:
                self.remove_agent(hostname)

    def add_agent(self, hostname: str) -> NodeAgent:
        with self._lock:
            worker = self._workers.get(hostname)
            if worker is not None:
                return worker.agent

            agent = NodeAgent(
                hostname=hostname,
                node_repository=self._repo,
                runtime=self._runtime,
                storage=self._storage,
                name_registry=self.name_registry,
                ledger=self.ledger,
                is_suspended=self.suspend_signal.is_suspended,
                emitter=self._emitter,
                full_reconcile_every=self.config.full_reconcile_every,
            )
            worker = AgentWorker(
                agent,
                BackoffPolicy.from_config(self.config, rng=random.Random(self._rng.random())),
                self.suspend_signal,
                self._in_flight,
            )
            self._workers[hostname] = worker
            logger.info(f"[orchestrator] Added agent for {hostname}")

            if self._started:
                worker.start()
            return agent

    def remove_agent(self, hostname: str) -> bool:
        """
        Stop and forget an agent.

        Only allowed once the runtime confirms the node has no container
        left. Returns False (and keeps the agent) otherwise.
        """
        with self._lock:
            worker = self._workers.get(hostname)
        if worker is None:
            return True
        agent = worker.agent

        try:
            status = self._runtime.inspect(agent.container_name)
        except TransientError as e:
            logger.warning(f"[orchestrator] Cannot verify container of {hostname}: {e}")
            return False

        owner = self.name_registry.owner_of(agent.container_name)
        if status is not None and owner in (None, hostname):
            logger.info(
                f"[orchestrator] Not removing agent for {hostname}: "
                f"container {agent.container_name} still {status.state}"
            )
            return False

        with self._lock:
            if self._workers.get(hostname) is not worker:
                # Replaced or removed while the runtime was inspected
                return hostname not in self._workers
            del self._workers[hostname]

        worker.stop()
        self.ledger.release(agent.container_name)
        self.name_registry.release(agent.container_name, hostname)
        logger.info(f"[orchestrator] ✅ Removed agent for {hostname}")
        return True

    def agent(self, hostname: str) -> Optional[NodeAgent]:
        with self._lock:
            worker = self._workers.get(hostname)
            return worker.agent if worker else None

    def agents(self) -> Dict[str, NodeAgent]:
        with self._lock:
            return {h: w.agent for h, w in self._workers.items()}

    def statuses(self) -> List[AgentStatus]:
        return [agent.status for _, agent in sorted(self.agents().items())]

    def tick_all(self) -> Dict[str, TickOutcome]:
        """Tick every agent once, in hostname order, on the calling thread."""
        with self._lock:
            workers = sorted(self._workers.items())
        return {hostname: worker.tick_once() for hostname, worker in workers}

    # ============================================
    # MAINTENANCE
    # ============================================

    def suspend(self) -> bool:
        """Freeze all ticking. Returns True if no tick is still in flight."""
        if not self.suspend_signal.is_suspended():
            logger.info(f"[orchestrator {self.host_hostname}] Suspending all agents")
        self.suspend_signal.suspend()
        return self.is_frozen()

    def resume(self) -> None:
        if self.suspend_signal.is_suspended():
            logger.info(f"[orchestrator {self.host_hostname}] Resuming all agents")
        self.suspend_signal.resume()

    def is_frozen(self) -> bool:
        return self.suspend_signal.is_suspended() and self._in_flight.count == 0

    def wait_until_frozen(self, timeout: Optional[float] = None) -> bool:
        if not self.suspend_signal.is_suspended():
            return False
        return self._in_flight.wait_idle(timeout)

    def run_maintenance(self) -> None:
        try:
            removed = self._storage.cleanup_after_archive()
        except (NodeAdminError, OSError) as e:
            logger.error(f"[orchestrator] Archive cleanup failed: {e}")
            return
        if removed:
            logger.info(f"[orchestrator] Deleted {len(removed)} expired archive(s)")
