# aquanet/reporting/report_md.py
"""
Render report.md for a simulation run.

Sections:
- summary (ticks, last-tick convergence, network size)
- final node pressures
- final pipe flow rates
- per-tick convergence
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from aquanet.core.types import NodeRole, SolveResult
from aquanet.network.model import NetworkSnapshot


def _fmt(x: Optional[float], digits: int = 6) -> str:
    if x is None:
        return "n/a"
    if math.isnan(x):
        return "nan"
    if x == float("inf"):
        return "inf"
    if x == float("-inf"):
        return "-inf"
    return f"{x:.{digits}g}"


def _flow_direction(q: float) -> str:
    if q > 0:
        return "source -> target"
    if q < 0:
        return "target -> source"
    return "none"


def render_report_md(
    scenario: Dict[str, Any],
    snapshot: NetworkSnapshot,
    results: Sequence[SolveResult],
) -> str:
    """
    `snapshot` is the network as it stood after the last tick (valve states included).
    """
    name = str(scenario.get("name", "scenario"))
    last = results[-1] if results else None

    lines: List[str] = []
    lines.append(f"# Water Network Simulation Report - {name}")
    lines.append("")

    lines.append("## Summary")
    lines.append(f"- **ticks:** {len(results)}")
    lines.append(f"- **nodes:** {len(snapshot.nodes)}")
    lines.append(f"- **pipes:** {len(snapshot.edges)}")
    if last is not None:
        lines.append(f"- **converged (last tick):** {'yes' if last.converged else 'no'}")
        lines.append(f"- **iterations (last tick):** {last.iterations}")
        lines.append(f"- **max pressure change (last tick):** {_fmt(last.max_abs_change)} bar")
        lines.append(f"- **active pipes:** {last.notes.get('active_edges', 'n/a')}")
        isolated = last.notes.get("isolated_nodes") or []
        lines.append(f"- **isolated nodes:** {', '.join(isolated) if isolated else 'none'}")
    else:
        lines.append("- (no ticks were run)")
    lines.append("")

    lines.append("## Node pressures")
    lines.append("| node | role | state | pressure (bar) |")
    lines.append("|---|---|---|---|")
    for n in snapshot.nodes.values():
        p = last.pressures.get(n.id) if last is not None else None
        state = ("open" if n.is_open else "closed") if n.role == NodeRole.VALVE else ""
        lines.append(f"| {n.id} | {n.role.value} | {state} | {_fmt(p)} |")
    lines.append("")

    lines.append("## Pipe flows")
    lines.append("| pipe | source | target | diameter (m) | flow (m³/s) | direction |")
    lines.append("|---|---|---|---|---|---|")
    for e in snapshot.edges.values():
        q = last.flow_rates.get(e.id, 0.0) if last is not None else 0.0
        lines.append(
            f"| {e.id} | {e.source_id} | {e.target_id} | {_fmt(e.diameter)} | {_fmt(q)} | {_flow_direction(q)} |"
        )
    lines.append("")

    lines.append("## Convergence per tick")
    if results:
        lines.append("| tick | iterations | converged | max change (bar) |")
        lines.append("|---|---|---|---|")
        for i, r in enumerate(results):
            lines.append(f"| {i} | {r.iterations} | {'yes' if r.converged else 'no'} | {_fmt(r.max_abs_change)} |")
    else:
        lines.append("- (no ticks)")
    lines.append("")

    return "\n".join(lines)
