# aquanet/core/types.py
"""
Shared types for aquanet.

Keep this file small and stable: the solver, the editor and the reporting layer
all speak in these types.

Design goals:
- Closed node-role variant (reservoir / valve / junction)
- Immutable per-tick records (the solver only reads them)
- Solver tunables in one frozen settings object
- JSON-friendly dataclasses
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


# ----------------------------
# Physical bounds / defaults
# ----------------------------

MAX_ITERATIONS = 10
CONVERGENCE_TOLERANCE_BAR = 0.01
VALVE_PRESSURE_DROP = 0.05
JUNCTION_PRESSURE_DROP = 0.05

RESERVOIR_PRESSURE_MIN_BAR = 0.0
RESERVOIR_PRESSURE_MAX_BAR = 200.0
DEFAULT_RESERVOIR_PRESSURE_BAR = 5.0

DIAMETER_MIN_M = 0.1
DIAMETER_MAX_M = 5.0
DEFAULT_DIAMETER_M = 1.0


# ----------------------------
# Enums
# ----------------------------

class NodeRole(str, Enum):
    RESERVOIR = "reservoir"
    VALVE = "valve"
    JUNCTION = "junction"

    @classmethod
    def parse(cls, value: Any) -> "NodeRole":
        if isinstance(value, NodeRole):
            return value
        return cls(str(value).strip().lower())


# ----------------------------
# Network records
# ----------------------------

Position = Tuple[float, float, float]


@dataclass(frozen=True)
class Node:
    """
    One network node as seen by the solver for a single tick.

    pressure:
      bar. For reservoirs this is the externally fixed supply pressure; for
      every other role it is the last derived value and is ignored on input.

    is_open:
      only meaningful for valves. Junctions and reservoirs are always "open".

    position:
      presentation only, never read by the solver.
    """
    id: str
    role: NodeRole
    pressure: float = 0.0
    is_open: bool = True
    position: Optional[Position] = None


@dataclass(frozen=True)
class Edge:
    """
    A pipe between two nodes.

    Sign convention for flow_rate: positive = source -> target (m^3/s).
    """
    id: str
    source_id: str
    target_id: str
    diameter: float = DEFAULT_DIAMETER_M
    flow_rate: float = 0.0


# ----------------------------
# Solver settings + results
# ----------------------------

@dataclass(frozen=True)
class SolverSettings:
    max_iterations: int = MAX_ITERATIONS
    tolerance_bar: float = CONVERGENCE_TOLERANCE_BAR
    valve_drop: float = VALVE_PRESSURE_DROP
    junction_drop: float = JUNCTION_PRESSURE_DROP

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be > 0, got {self.max_iterations}")
        if not self.tolerance_bar > 0:
            raise ValueError(f"tolerance_bar must be > 0, got {self.tolerance_bar}")
        for name in ("valve_drop", "junction_drop"):
            v = getattr(self, name)
            if not 0.0 <= v < 1.0:
                raise ValueError(f"{name} must be in [0, 1), got {v}")

    @staticmethod
    def from_mapping(d: Optional[Mapping[str, Any]]) -> "SolverSettings":
        d = d or {}
        return SolverSettings(
            max_iterations=int(d.get("max_iterations", MAX_ITERATIONS)),
            tolerance_bar=float(d.get("tolerance_bar", CONVERGENCE_TOLERANCE_BAR)),
            valve_drop=float(d.get("valve_drop", VALVE_PRESSURE_DROP)),
            junction_drop=float(d.get("junction_drop", JUNCTION_PRESSURE_DROP)),
        )


@dataclass(frozen=True)
class SolveResult:
    """
    Output of one solver invocation (one tick).

    pressures:
      node id -> bar, for every node (reservoirs pass through unchanged).
    flow_rates:
      edge id -> m^3/s, for every edge (inactive and dangling edges are 0).
    iterations:
      relaxation passes actually executed (1..max_iterations, 0 for an empty network).
    converged:
      True if the last pass moved no node by tolerance_bar or more.
    """
    pressures: Dict[str, float]
    flow_rates: Dict[str, float]
    iterations: int
    converged: bool
    max_abs_change: float = 0.0
    notes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(asdict(self))


# ----------------------------
# JSON helpers
# ----------------------------

def to_jsonable(obj: Any) -> Any:
    """
    Convert common Python objects (dataclasses, enums, tuples) into JSON-serializable
    forms. Safe to call on nested structures. Non-finite floats become strings so
    json.dumps never emits NaN/Infinity.
    """
    if obj is None:
        return None

    if isinstance(obj, Enum):
        return obj.value

    if is_dataclass(obj) and not isinstance(obj, type):
        return to_jsonable(asdict(obj))

    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]

    if isinstance(obj, float) and not math.isfinite(obj):
        return str(obj)

    # Basic scalar types pass through
    if isinstance(obj, (str, int, float, bool)):
        return obj

    # Fallback: stringify unknown types (keeps exports robust)
    return str(obj)


def is_finite_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(float(x))
