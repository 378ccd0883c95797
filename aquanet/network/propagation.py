# aquanet/network/propagation.py
"""
Pressure propagator: one Jacobi relaxation pass.

Every read comes from `previous` (the snapshot taken at the start of the pass),
never from values already updated in the same pass, so the result does not depend
on node order.

Per node role:
  reservoir      -> never recomputed (external constant)
  closed valve   -> frozen, excluded from recomputation
  open valve     -> max(qualifying neighbors) * (1 - valve_drop)
  junction       -> mean(qualifying neighbors) * (1 - junction_drop / 2)

A "qualifying" neighbor is an active neighbor whose previous pressure is finite
and > 0. A node with no qualifying neighbor keeps its previous pressure.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, Optional

from aquanet.core.types import Node, NodeRole, SolverSettings
from aquanet.network.connectivity import Connectivity
from aquanet.network.model import NetworkSnapshot


def _qualifying_pressures(node_id: str, connectivity: Connectivity, previous: Mapping[str, float]) -> List[float]:
    out: List[float] = []
    for nbr in connectivity.neighbors(node_id):
        p = previous.get(nbr, 0.0)
        if math.isfinite(p) and p > 0.0:
            out.append(p)
    return out


def relax_node(
    node: Node,
    connectivity: Connectivity,
    previous: Mapping[str, float],
    settings: SolverSettings,
) -> Optional[float]:
    """
    New pressure for a single node, or None if the node keeps its previous value.
    """
    role = node.role
    if role == NodeRole.RESERVOIR:
        return None
    if role == NodeRole.VALVE:
        if not node.is_open:
            return None
        ps = _qualifying_pressures(node.id, connectivity, previous)
        if not ps:
            return None
        return max(ps) * (1.0 - settings.valve_drop)
    if role == NodeRole.JUNCTION:
        ps = _qualifying_pressures(node.id, connectivity, previous)
        if not ps:
            return None
        return (sum(ps) / len(ps)) * (1.0 - settings.junction_drop / 2.0)
    raise ValueError(f"unhandled node role: {role!r}")


def propagate_pressures(
    snapshot: NetworkSnapshot,
    connectivity: Connectivity,
    previous: Mapping[str, float],
    settings: SolverSettings,
) -> Dict[str, float]:
    """
    Returns a new pressure map; `previous` is left untouched.
    """
    nxt: Dict[str, float] = dict(previous)
    for node in snapshot.nodes.values():
        p = relax_node(node, connectivity, previous, settings)
        if p is not None:
            nxt[node.id] = p
    return nxt
