# node_admin/infrastructure/memory/calls.py
"""Call recording and fault injection shared by the in-memory fakes."""

from dataclasses import dataclass
from threading import Lock
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Call:
    target: str
    method: str
    args: Tuple = ()

    def __str__(self) -> str:
        return f"{self.target}.{self.method}{self.args}"


class CallLog:
    """Ordered log of calls made on one or more fakes."""

    def __init__(self):
        self._calls: List[Call] = []
        self._lock = Lock()

    def record(self, target: str, method: str, *args) -> None:
        with self._lock:
            self._calls.append(Call(target, method, tuple(args)))

    def calls(self, target: Optional[str] = None) -> List[Call]:
        with self._lock:
            calls = list(self._calls)
        if target is not None:
            calls = [c for c in calls if c.target == target]
        return calls

    def methods(self, target: Optional[str] = None) -> List[str]:
        return [c.method for c in self.calls(target)]

    def count(self, target: Optional[str] = None) -> int:
        return len(self.calls(target))

    def clear(self) -> None:
        with self._lock:
            self._calls.clear()


class FaultInjector:
    """Makes the next N calls of a method raise a given error."""

    def __init__(self):
        self._faults: Dict[str, List] = {}
        self._fault_lock = Lock()

    def fail_next(self, method: str, error: Exception, times: int = 1) -> None:
        with self._fault_lock:
            self._faults[method] = [error, times]

    def _maybe_fail(self, method: str) -> None:
        with self._fault_lock:
            fault = self._faults.get(method)
            if not fault:
                return
            error, remaining = fault
            if remaining <= 1:
                del self._faults[method]
            else:
                fault[1] = remaining - 1
        raise error
