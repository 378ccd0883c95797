# aquanet/network/solver.py
"""
Convergence controller: the public `solve(snapshot) -> SolveResult` entrypoint.

Loop (bounded by settings.max_iterations):
  1. seed: reservoirs = their fixed pressure, everything else = 0
  2. per pass: propagate pressures (Jacobi) -> compute flows -> max |delta p|
  3. stop early once max |delta p| < tolerance_bar

Pure function of the snapshot: no state survives between calls, so valve toggles
and parameter edits between ticks take effect with no residual bias.
A non-finite delta counts as "not converged"; the iteration cap still ends the loop.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Mapping, Optional

from aquanet.core.types import NodeRole, SolveResult, SolverSettings
from aquanet.network.connectivity import resolve_connectivity
from aquanet.network.flow import compute_flow_rates
from aquanet.network.model import NetworkSnapshot
from aquanet.network.propagation import propagate_pressures

logger = logging.getLogger(__name__)


def seed_pressures(snapshot: NetworkSnapshot) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for node in snapshot.nodes.values():
        out[node.id] = float(node.pressure) if node.role == NodeRole.RESERVOIR else 0.0
    return out


def max_abs_change(new: Mapping[str, float], old: Mapping[str, float]) -> float:
    """
    Largest |new - old| over all nodes; NaN/inf propagate as inf.
    """
    worst = 0.0
    for node_id, p in new.items():
        d = abs(p - old.get(node_id, 0.0))
        if not math.isfinite(d):
            return math.inf
        worst = max(worst, d)
    return worst


def solve(snapshot: NetworkSnapshot, settings: Optional[SolverSettings] = None) -> SolveResult:
    settings = settings or SolverSettings()

    flows: Dict[str, float] = {eid: 0.0 for eid in snapshot.edge_ids()}
    if len(snapshot) == 0:
        return SolveResult(pressures={}, flow_rates=flows, iterations=0, converged=True)

    pressures = seed_pressures(snapshot)
    # Valve state cannot change inside a tick, so connectivity is resolved once.
    connectivity = resolve_connectivity(snapshot)

    iterations = 0
    change = 0.0
    converged = False

    for iteration in range(settings.max_iterations):
        nxt = propagate_pressures(snapshot, connectivity, pressures, settings)
        flows = compute_flow_rates(snapshot, connectivity, nxt)
        change = max_abs_change(nxt, pressures)
        pressures = nxt
        iterations = iteration + 1

        logger.debug("iteration %d: max_abs_change=%.6g", iterations, change)

        if math.isfinite(change) and change < settings.tolerance_bar:
            converged = True
            break

    if converged:
        logger.debug("converged after %d iteration(s)", iterations)
    else:
        logger.debug("iteration cap reached (%d), last change=%.6g", iterations, change)

    return SolveResult(
        pressures=pressures,
        flow_rates=flows,
        iterations=iterations,
        converged=converged,
        max_abs_change=change,
        notes={
            "active_edges": len(connectivity.active_edge_ids),
            "dangling_edges": sorted(connectivity.dangling_edge_ids),
            "isolated_nodes": connectivity.isolated_node_ids(),
        },
    )
