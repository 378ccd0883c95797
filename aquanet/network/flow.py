# aquanet/network/flow.py
"""
Flow calculator.

Simplified Darcy-Weisbach analogue:
  resistance = 8 / (pi * d^4)
  flow_rate  = (p_source - p_target) / resistance      (positive = source -> target)

Inactive and dangling edges carry 0. A blocked diameter (non-finite or ~0) means
infinite resistance and 0 flow; a flow that would come out non-finite is reported 0.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Mapping

from aquanet.network.connectivity import Connectivity
from aquanet.network.model import NetworkSnapshot

logger = logging.getLogger(__name__)

# Anything at or below this is treated as a fully blocked pipe.
BLOCKED_DIAMETER_M = 1e-9


def pipe_resistance(diameter: float) -> float:
    try:
        d = float(diameter)
    except (TypeError, ValueError):
        return math.inf
    if not math.isfinite(d) or d <= BLOCKED_DIAMETER_M:
        return math.inf
    r = 8.0 / (math.pi * d ** 4)
    if not math.isfinite(r) or r <= 0.0:
        return math.inf
    return r


def edge_flow_rate(p_source: float, p_target: float, diameter: float) -> float:
    r = pipe_resistance(diameter)
    if math.isinf(r):
        return 0.0
    q = (p_source - p_target) / r
    return q if math.isfinite(q) else 0.0


def compute_flow_rates(
    snapshot: NetworkSnapshot,
    connectivity: Connectivity,
    pressures: Mapping[str, float],
) -> Dict[str, float]:
    flows: Dict[str, float] = {}
    for edge in snapshot.edges.values():
        if not connectivity.is_active(edge.id):
            flows[edge.id] = 0.0
            continue

        if math.isinf(pipe_resistance(edge.diameter)):
            logger.debug("edge %s blocked by diameter %r, flow forced to 0", edge.id, edge.diameter)
            flows[edge.id] = 0.0
            continue

        p_source = pressures.get(edge.source_id, 0.0)
        p_target = pressures.get(edge.target_id, 0.0)
        if not (math.isfinite(p_source) and math.isfinite(p_target)):
            logger.debug("edge %s has a non-finite end pressure, flow forced to 0", edge.id)
            flows[edge.id] = 0.0
            continue

        flows[edge.id] = edge_flow_rate(p_source, p_target, edge.diameter)
    return flows
