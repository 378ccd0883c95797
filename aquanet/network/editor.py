# aquanet/network/editor.py
"""
Headless topology editor.

Owns the mutable node/pipe records between ticks and hands the solver an immutable
NetworkSnapshot each tick. Mirrors the rules of the interactive editor:
  - structural edits (add/remove node or pipe, reservoir pressure, pipe diameter)
    are only allowed while the simulation is stopped
  - valve open/closed toggling is allowed at any time
  - solve results are written back with apply_result()
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Dict, List, Optional

from aquanet.core.errors import EditError
from aquanet.core.types import (
    DEFAULT_DIAMETER_M,
    DEFAULT_RESERVOIR_PRESSURE_BAR,
    DIAMETER_MAX_M,
    DIAMETER_MIN_M,
    RESERVOIR_PRESSURE_MAX_BAR,
    RESERVOIR_PRESSURE_MIN_BAR,
    Edge,
    Node,
    NodeRole,
    Position,
    SolveResult,
    is_finite_number,
)
from aquanet.network.model import NetworkSnapshot


def _new_id() -> str:
    return uuid.uuid4().hex


class NetworkEditor:
    def __init__(self) -> None:
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._running = False

    # ----------------------------
    # Construction helpers
    # ----------------------------

    @classmethod
    def demo(cls) -> "NetworkEditor":
        """
        The starter network: one 100 bar reservoir feeding two valves and two junctions.
        """
        ed = cls()
        ed.add_node(NodeRole.RESERVOIR, pressure=100.0, node_id="reservoir-1", position=(100.0, 300.0, 0.0))
        ed.add_node(NodeRole.VALVE, node_id="valve-1", position=(300.0, 300.0, 0.0))
        ed.add_node(NodeRole.JUNCTION, node_id="junction-1", position=(500.0, 300.0, 0.0))
        ed.add_node(NodeRole.VALVE, node_id="valve-2", position=(700.0, 300.0, 0.0))
        ed.add_node(NodeRole.JUNCTION, node_id="junction-2", position=(500.0, 100.0, 0.0))
        ed.add_edge("reservoir-1", "valve-1", edge_id="edge-1")
        ed.add_edge("valve-1", "junction-1", edge_id="edge-2")
        ed.add_edge("junction-1", "valve-2", edge_id="edge-3")
        ed.add_edge("junction-1", "junction-2", edge_id="edge-4")
        return ed

    @classmethod
    def from_snapshot(cls, snapshot: NetworkSnapshot) -> "NetworkEditor":
        ed = cls()
        ed._nodes = dict(snapshot.nodes)
        ed._edges = dict(snapshot.edges)
        return ed

    # ----------------------------
    # Read access
    # ----------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def node(self, node_id: str) -> Node:
        n = self._nodes.get(node_id)
        if n is None:
            raise EditError("node", f"unknown node id '{node_id}'")
        return n

    def edge(self, edge_id: str) -> Edge:
        e = self._edges.get(edge_id)
        if e is None:
            raise EditError("edge", f"unknown edge id '{edge_id}'")
        return e

    def snapshot(self) -> NetworkSnapshot:
        return NetworkSnapshot(self._nodes, self._edges)

    # ----------------------------
    # Run state
    # ----------------------------

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def toggle_running(self) -> bool:
        self._running = not self._running
        return self._running

    def _require_stopped(self, op: str) -> None:
        if self._running:
            raise EditError(op, "structural edits are not allowed while the simulation is running",
                            hint="stop the simulation first")

    # ----------------------------
    # Nodes
    # ----------------------------

    def add_node(
        self,
        role: NodeRole,
        pressure: Optional[float] = None,
        is_open: bool = True,
        node_id: Optional[str] = None,
        position: Optional[Position] = None,
    ) -> str:
        self._require_stopped("add_node")
        try:
            role = NodeRole.parse(role)
        except ValueError as e:
            raise EditError(
                "add_node",
                f"unknown node role {role!r}",
                f"expected one of {[r.value for r in NodeRole]}",
            ) from e
        nid = node_id or _new_id()
        if nid in self._nodes:
            raise EditError("add_node", f"node id '{nid}' already exists")

        if role == NodeRole.RESERVOIR:
            p = DEFAULT_RESERVOIR_PRESSURE_BAR if pressure is None else pressure
            self._check_reservoir_pressure("add_node", p)
        else:
            p = 0.0

        self._nodes[nid] = Node(id=nid, role=role, pressure=float(p), is_open=bool(is_open), position=position)
        return nid

    def remove_node(self, node_id: str) -> None:
        self._require_stopped("remove_node")
        self.node(node_id)
        del self._nodes[node_id]
        self._edges = {
            eid: e for eid, e in self._edges.items()
            if e.source_id != node_id and e.target_id != node_id
        }

    def toggle_valve(self, node_id: str) -> bool:
        """
        Flip a valve. Allowed while running. Returns the new is_open state.
        """
        n = self.node(node_id)
        if n.role != NodeRole.VALVE:
            raise EditError("toggle_valve", f"node '{node_id}' is a {n.role.value}, not a valve")
        self._nodes[node_id] = replace(n, is_open=not n.is_open)
        return not n.is_open

    def set_reservoir_pressure(self, node_id: str, pressure: float) -> None:
        self._require_stopped("set_reservoir_pressure")
        n = self.node(node_id)
        if n.role != NodeRole.RESERVOIR:
            raise EditError("set_reservoir_pressure", f"node '{node_id}' is a {n.role.value}, not a reservoir")
        self._check_reservoir_pressure("set_reservoir_pressure", pressure)
        self._nodes[node_id] = replace(n, pressure=float(pressure))

    @staticmethod
    def _check_reservoir_pressure(op: str, pressure: float) -> None:
        if not is_finite_number(pressure) or not (
            RESERVOIR_PRESSURE_MIN_BAR <= float(pressure) <= RESERVOIR_PRESSURE_MAX_BAR
        ):
            raise EditError(
                op,
                f"reservoir pressure must be in [{RESERVOIR_PRESSURE_MIN_BAR:g}, {RESERVOIR_PRESSURE_MAX_BAR:g}] bar, got {pressure!r}",
            )

    # ----------------------------
    # Pipes
    # ----------------------------

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        diameter: float = DEFAULT_DIAMETER_M,
        edge_id: Optional[str] = None,
    ) -> str:
        self._require_stopped("add_edge")
        if source_id == target_id:
            raise EditError("add_edge", f"cannot connect node '{source_id}' to itself")
        for nid in (source_id, target_id):
            if nid not in self._nodes:
                raise EditError("add_edge", f"unknown node id '{nid}'")
        for e in self._edges.values():
            if {e.source_id, e.target_id} == {source_id, target_id}:
                raise EditError("add_edge", f"'{source_id}' and '{target_id}' are already connected by '{e.id}'")
        self._check_diameter("add_edge", diameter)

        eid = edge_id or _new_id()
        if eid in self._edges:
            raise EditError("add_edge", f"edge id '{eid}' already exists")
        self._edges[eid] = Edge(id=eid, source_id=source_id, target_id=target_id, diameter=float(diameter))
        return eid

    def remove_edge(self, edge_id: str) -> None:
        self._require_stopped("remove_edge")
        self.edge(edge_id)
        del self._edges[edge_id]

    def set_edge_diameter(self, edge_id: str, diameter: float) -> None:
        self._require_stopped("set_edge_diameter")
        e = self.edge(edge_id)
        self._check_diameter("set_edge_diameter", diameter)
        self._edges[edge_id] = replace(e, diameter=float(diameter))

    @staticmethod
    def _check_diameter(op: str, diameter: float) -> None:
        if not is_finite_number(diameter) or not (DIAMETER_MIN_M <= float(diameter) <= DIAMETER_MAX_M):
            raise EditError(
                op,
                f"pipe diameter must be in [{DIAMETER_MIN_M:g}, {DIAMETER_MAX_M:g}] m, got {diameter!r}",
            )

    # ----------------------------
    # Solver write-back
    # ----------------------------

    def apply_result(self, result: SolveResult) -> None:
        """
        Store derived pressures (non-reservoirs only) and flow rates on the records.
        Ids no longer present are ignored.
        """
        for nid, p in result.pressures.items():
            n = self._nodes.get(nid)
            if n is None or n.role == NodeRole.RESERVOIR:
                continue
            self._nodes[nid] = replace(n, pressure=float(p))
        for eid, q in result.flow_rates.items():
            e = self._edges.get(eid)
            if e is None:
                continue
            self._edges[eid] = replace(e, flow_rate=float(q))
