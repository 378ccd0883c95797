# aquanet/network/connectivity.py
"""
Connectivity resolver.

An edge is active iff both endpoints exist and neither is a closed valve.
Adjacency over active edges is undirected: if A-B is active, A lists B and B lists A.

Disconnected components and isolated nodes are normal; they simply have no
neighbors. Edges whose endpoints are missing are skipped (never fatal).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from aquanet.core.types import Node, NodeRole
from aquanet.network.model import NetworkSnapshot

logger = logging.getLogger(__name__)


def blocks_flow(node: Node) -> bool:
    """True if this node disconnects every pipe attached to it."""
    role = node.role
    if role == NodeRole.VALVE:
        return not node.is_open
    if role == NodeRole.RESERVOIR:
        return False
    if role == NodeRole.JUNCTION:
        return False
    raise ValueError(f"unhandled node role: {role!r}")


@dataclass(frozen=True)
class Connectivity:
    active_edge_ids: FrozenSet[str]
    dangling_edge_ids: FrozenSet[str]
    adjacency: Dict[str, Tuple[str, ...]]

    def neighbors(self, node_id: str) -> Tuple[str, ...]:
        return self.adjacency.get(node_id, ())

    def is_active(self, edge_id: str) -> bool:
        return edge_id in self.active_edge_ids

    def isolated_node_ids(self) -> List[str]:
        return [nid for nid, nbrs in self.adjacency.items() if not nbrs]


def resolve_connectivity(snapshot: NetworkSnapshot) -> Connectivity:
    adjacency: Dict[str, List[str]] = {nid: [] for nid in snapshot.node_ids()}
    active: List[str] = []
    dangling: List[str] = []

    for edge in snapshot.edges.values():
        src = snapshot.node(edge.source_id)
        tgt = snapshot.node(edge.target_id)
        if src is None or tgt is None:
            logger.debug("skipping edge %s: endpoint missing (%s -> %s)", edge.id, edge.source_id, edge.target_id)
            dangling.append(edge.id)
            continue

        if blocks_flow(src) or blocks_flow(tgt):
            continue

        active.append(edge.id)
        adjacency[src.id].append(tgt.id)
        adjacency[tgt.id].append(src.id)

    return Connectivity(
        active_edge_ids=frozenset(active),
        dangling_edge_ids=frozenset(dangling),
        adjacency={nid: tuple(nbrs) for nid, nbrs in adjacency.items()},
    )
