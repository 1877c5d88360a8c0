"""Feature flags defined by node admin, and their JSON export."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple


@dataclass(frozen=True)
class FlagDefinition:
    flag_id: str
    description: str
    modification_effect: str
    dimensions: Tuple[str, ...] = field(default_factory=tuple)


DEFINED_FLAGS: List[FlagDefinition] = [
    FlagDefinition(
        flag_id="node-admin-full-reconcile-every",
        description="Number of ticks after which an agent inspects its container even if the node spec is unchanged",
        modification_effect="Takes effect on next agent restart",
        dimensions=("hostname",),
    ),
    FlagDefinition(
        flag_id="node-admin-archive-retention-days",
        description="Days archived node storage is kept before it is deleted",
        modification_effect="Takes effect on next archive cleanup",
        dimensions=("hostname",),
    ),
    FlagDefinition(
        flag_id="node-admin-tick-interval",
        description="Seconds between convergence ticks of a healthy node agent",
        modification_effect="Takes effect on next agent restart",
        dimensions=("hostname", "node-type"),
    ),
]


def defined_flags_document(flags: Iterable[FlagDefinition] = DEFINED_FLAGS) -> Dict[str, Any]:
    """Flag id -> definition, ordered by flag id so exports diff cleanly."""
    document: Dict[str, Any] = {}
    for flag in sorted(flags, key=lambda f: f.flag_id):
        document[flag.flag_id] = {
            "description": flag.description,
            "modification-effect": flag.modification_effect,
            "dimensions": list(flag.dimensions),
        }
    return document
