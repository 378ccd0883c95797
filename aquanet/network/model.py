# aquanet/network/model.py
"""
Network model: an id-indexed, read-only snapshot of nodes and pipes for one tick.

Nodes and edges live in two insertion-ordered maps keyed by id, so the rest of the
solver is plain lookup-by-id with no object cross-references.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from aquanet.core.types import Edge, Node, NodeRole


class NetworkSnapshot:
    def __init__(self, nodes: Mapping[str, Node], edges: Mapping[str, Edge]):
        self._nodes: Mapping[str, Node] = MappingProxyType(dict(nodes))
        self._edges: Mapping[str, Edge] = MappingProxyType(dict(edges))

    @classmethod
    def from_elements(cls, nodes: Iterable[Node], edges: Iterable[Edge] = ()) -> "NetworkSnapshot":
        """
        Build from sequences. A later record with a repeated id replaces the earlier one.
        """
        node_map: Dict[str, Node] = {}
        for n in nodes:
            node_map[n.id] = n
        edge_map: Dict[str, Edge] = {}
        for e in edges:
            edge_map[e.id] = e
        return cls(node_map, edge_map)

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    @property
    def edges(self) -> Mapping[str, Edge]:
        return self._edges

    def node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def node_ids(self) -> List[str]:
        return list(self._nodes.keys())

    def edge_ids(self) -> List[str]:
        return list(self._edges.keys())

    def reservoirs(self) -> List[Node]:
        return [n for n in self._nodes.values() if n.role == NodeRole.RESERVOIR]

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"NetworkSnapshot(nodes={len(self._nodes)}, edges={len(self._edges)})"
