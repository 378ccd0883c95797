# aquanet/core/output.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import json
import logging

from aquanet.core.config import canonical_yaml_dump

logger = logging.getLogger(__name__)


@dataclass
class RunArtifacts:
    normalized_config: Dict[str, Any]
    solution: Dict[str, Any]
    report_md: str
    traces_rows: List[Dict[str, Any]]  # one row per tick


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _write_json(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def _write_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        path.write_text("", encoding="utf-8")
        return
    # Deterministic column order: sorted keys across all rows
    cols = sorted({k for r in rows for k in r.keys()})
    lines = [",".join(cols)]
    for r in rows:
        parts = []
        for c in cols:
            v = r.get(c, "")
            if v is None:
                s = ""
            elif isinstance(v, float):
                s = f"{v:.10g}"
            else:
                s = str(v)
            if any(ch in s for ch in [",", '"', "\n"]):
                s = '"' + s.replace('"', '""') + '"'
            parts.append(s)
        lines.append(",".join(parts))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_output_contract(outputs_root: Path, scenario_name: str, artifacts: RunArtifacts) -> Path:
    """
    Always writes:
      outputs/<scenario_name>/
        config.yaml
        solution.json
        report.md
        traces.csv
    and, when matplotlib can render it, plots/pressure_over_ticks.png.
    Returns the scenario output directory.
    """
    out_dir = outputs_root / scenario_name
    out_dir.mkdir(parents=True, exist_ok=True)

    _write_text(out_dir / "config.yaml", canonical_yaml_dump(artifacts.normalized_config))
    _write_json(out_dir / "solution.json", artifacts.solution)
    _write_text(out_dir / "report.md", artifacts.report_md if artifacts.report_md.endswith("\n") else artifacts.report_md + "\n")
    _write_csv(out_dir / "traces.csv", artifacts.traces_rows)

    try:
        from aquanet.reporting.plots import generate_plots

        generate_plots(out_dir)
    except Exception as e:  # noqa: BLE001
        logger.warning("plot generation skipped for %s: %s: %s", out_dir, type(e).__name__, e)
    return out_dir
