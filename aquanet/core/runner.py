# aquanet/core/runner.py
"""
Scenario runner: normalized config -> editor + simulation -> output artifacts.

    cfg -> snapshot / settings / events -> Simulation.run(ticks) -> RunArtifacts

`run_scenario(config_path, outputs_root)` is the Python entrypoint the CLI wraps.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from aquanet.core.config import load_yaml, normalize_config, validate_config
from aquanet.core.output import RunArtifacts, write_output_contract
from aquanet.core.types import Edge, Node, NodeRole, SolveResult, SolverSettings, to_jsonable
from aquanet.network.editor import NetworkEditor
from aquanet.network.model import NetworkSnapshot
from aquanet.simulation import Simulation, ValveToggle

logger = logging.getLogger(__name__)


def snapshot_from_config(cfg: Mapping[str, Any]) -> NetworkSnapshot:
    network = cfg.get("network") or {}
    nodes: List[Node] = []
    for n in network.get("nodes", []):
        role = NodeRole.parse(n["role"])
        nodes.append(
            Node(
                id=str(n["id"]),
                role=role,
                pressure=float(n.get("pressure_bar", 0.0) or 0.0) if role == NodeRole.RESERVOIR else 0.0,
                is_open=bool(n.get("open", True)),
            )
        )
    edges = [
        Edge(
            id=str(e["id"]),
            source_id=str(e["source"]),
            target_id=str(e["target"]),
            diameter=float(e["diameter_m"]),
        )
        for e in network.get("edges", [])
    ]
    return NetworkSnapshot.from_elements(nodes, edges)


def events_from_config(cfg: Mapping[str, Any]) -> List[ValveToggle]:
    return [ValveToggle(tick=int(ev["tick"]), node_id=str(ev["toggle_valve"])) for ev in cfg.get("events") or []]


def _traces_row(tick: int, result: SolveResult) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "tick": tick,
        "iterations": result.iterations,
        "converged": int(result.converged),
        "max_abs_change": float(result.max_abs_change),
    }
    for nid, p in result.pressures.items():
        row[f"pressure_bar.{nid}"] = float(p)
    for eid, q in result.flow_rates.items():
        row[f"flow_m3s.{eid}"] = float(q)
    return row


def run_simulation(normalized_cfg: Dict[str, Any]) -> RunArtifacts:
    """
    Run a validated, normalized config and build the artifacts (nothing is written).
    """
    from aquanet.reporting.report_md import render_report_md

    scenario = normalized_cfg["scenario"]
    run = normalized_cfg["run"]

    editor = NetworkEditor.from_snapshot(snapshot_from_config(normalized_cfg))
    settings = SolverSettings.from_mapping(normalized_cfg.get("solver"))
    sim = Simulation(editor, settings=settings, period_s=float(run["period_ms"]) / 1000.0)

    traces_rows: List[Dict[str, Any]] = []

    def on_tick(i: int, result: SolveResult) -> None:
        traces_rows.append(_traces_row(i, result))

    results = sim.run(
        int(run["ticks"]),
        events=events_from_config(normalized_cfg),
        on_tick=on_tick,
        realtime=bool(run.get("realtime", False)),
    )

    final = editor.snapshot()
    last = results[-1] if results else None

    solution = {
        "scenario": scenario["name"],
        "ticks": len(results),
        "converged": bool(last.converged) if last is not None else True,
        "iterations": int(last.iterations) if last is not None else 0,
        "pressures": dict(last.pressures) if last is not None else {},
        "flow_rates": dict(last.flow_rates) if last is not None else {},
        "valves": {n.id: ("open" if n.is_open else "closed") for n in final.nodes.values() if n.role == NodeRole.VALVE},
        "network": {
            "nodes": len(final.nodes),
            "edges": len(final.edges),
            "active_edges": int(last.notes.get("active_edges", 0)) if last is not None else 0,
            "isolated_nodes": list(last.notes.get("isolated_nodes", [])) if last is not None else [],
            "dangling_edges": list(last.notes.get("dangling_edges", [])) if last is not None else [],
        },
        "per_tick": [
            {
                "tick": i,
                "iterations": r.iterations,
                "converged": r.converged,
                "max_abs_change": r.max_abs_change,
            }
            for i, r in enumerate(results)
        ],
        "solver": to_jsonable(settings),
        "traces": {
            "path": "traces.csv",
            "n_rows": len(traces_rows),
        },
    }

    return RunArtifacts(
        normalized_config=normalized_cfg,
        solution=to_jsonable(solution),
        report_md=render_report_md(scenario, final, results),
        traces_rows=traces_rows,
    )


def load_scenario(config_path: Union[str, Path], overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Load + normalize + validate. `overrides` is merged into the `run` section.
    """
    ypath = Path(config_path)
    raw = load_yaml(ypath)
    normalized = normalize_config(raw, source_path=ypath)
    if overrides:
        normalized["run"].update(overrides)
    validate_config(normalized)
    return normalized


def run_scenario(
    config_path: Union[str, Path],
    outputs_root: Union[str, Path] = "outputs",
    overrides: Optional[Mapping[str, Any]] = None,
) -> Path:
    """
    Run a scenario file end to end and write outputs/<scenario_name>/. Returns that directory.
    """
    normalized = load_scenario(config_path, overrides)
    scenario_name = normalized["scenario"]["name"]
    logger.info("running scenario %s (%d ticks)", scenario_name, normalized["run"]["ticks"])
    artifacts = run_simulation(normalized)
    return write_output_contract(Path(outputs_root), scenario_name, artifacts)
