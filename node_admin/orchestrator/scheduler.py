# node_admin/orchestrator/scheduler.py
"""Per-agent tick scheduling with jitter and backoff."""

import logging
import random
import threading
from typing import Optional

from node_admin.agent.node_agent import NodeAgent, TickOutcome
from node_admin.orchestrator.config import SchedulerConfig

logger = logging.getLogger(__name__)


class BackoffPolicy:
    """
    Delay before an agent's next tick.

    Healthy agents tick every ``interval``. After n consecutive failed
    ticks the delay is ``initial * multiplier ** (n - 1)``, capped at
    ``maximum``. Every delay is scaled by a random factor in
    ``[1 - jitter, 1 + jitter]`` so agents drift apart.
    """

    def __init__(
        self,
        interval: float,
        initial: float,
        multiplier: float,
        maximum: float,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        if interval <= 0 or initial <= 0:
            raise ValueError("interval and initial must be positive")
        if multiplier < 1:
            raise ValueError("multiplier must be at least 1")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self.interval = interval
        self.initial = initial
        self.multiplier = multiplier
        self.maximum = maximum
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: SchedulerConfig, rng: Optional[random.Random] = None) -> "BackoffPolicy":
        return cls(
            interval=config.tick_interval_seconds,
            initial=config.backoff_initial_seconds,
            multiplier=config.backoff_multiplier,
            maximum=config.backoff_max_seconds,
            jitter=config.jitter,
            rng=rng,
        )

    def base_delay(self, consecutive_failures: int) -> float:
        if consecutive_failures <= 0:
            return self.interval
        delay = self.initial * self.multiplier ** (consecutive_failures - 1)
        return min(self.maximum, delay)

    def next_delay(self, consecutive_failures: int) -> float:
        return self._jittered(self.base_delay(consecutive_failures))

    def initial_delay(self) -> float:
        """Spread the first ticks of agents started together."""
        return self._rng.uniform(0, self.interval * self.jitter) if self.jitter else 0.0

    def _jittered(self, delay: float) -> float:
        if not self.jitter:
            return delay
        return delay * self._rng.uniform(1 - self.jitter, 1 + self.jitter)


class SuspendSignal:
    """Host-wide freeze flag, observed by agents at safe points."""

    def __init__(self):
        self._suspended = threading.Event()

    def suspend(self) -> None:
        self._suspended.set()

    def resume(self) -> None:
        self._suspended.clear()

    def is_suspended(self) -> bool:
        return self._suspended.is_set()


class InFlightTicks:
    """Counts ticks currently running on the host."""

    def __init__(self):
        self._count = 0
        self._condition = threading.Condition()

    def __enter__(self):
        with self._condition:
            self._count += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        with self._condition:
            self._count -= 1
            self._condition.notify_all()
        return False

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout=timeout)


class AgentWorker:
    """
    Runs one agent's ticks on a dedicated thread.

    A tick always completes, successfully or not, before the next one is
    scheduled, so ticks of one agent never overlap.
    """

    SUSPENDED_POLL_SECONDS = 1.0

    def __init__(
        self,
        agent: NodeAgent,
        backoff: BackoffPolicy,
        suspend_signal: SuspendSignal,
        in_flight: InFlightTicks,
    ):
        self.agent = agent
        self.backoff = backoff
        self._suspend_signal = suspend_signal
        self._in_flight = in_flight
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=f"agent-{self.agent.container_name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"[scheduler] Started worker for {self.agent.hostname}")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.info(f"[scheduler] Stopped worker for {self.agent.hostname}")

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def tick_once(self) -> TickOutcome:
        """Tick now, waiting for an in-flight tick of this agent to finish first."""
        with self._tick_lock:
            with self._in_flight:
                return self.agent.tick()

    def _run_loop(self) -> None:
        delay = self.backoff.initial_delay()
        while not self._stop_event.wait(delay):
            if self._suspend_signal.is_suspended():
                delay = min(self.SUSPENDED_POLL_SECONDS, self.backoff.interval)
                continue
            try:
                self.tick_once()
            except Exception as e:
                # NodeAgent.tick never raises
                logger.error(f"[scheduler] Tick of {self.agent.hostname} raised: {e}", exc_info=True)
            delay = self.backoff.next_delay(self.agent.status.consecutive_failures)
