# aquanet/visualization/pressure_plots.py
from __future__ import annotations

"""
Node pressure plots.

Reads outputs/<scenario>/traces.csv (one row per tick, one `pressure_bar.<node>`
column per node) and writes outputs/<scenario>/plots/pressure_over_ticks.png.
"""

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402


PRESSURE_PREFIX = "pressure_bar."
TICK_COLUMN = "tick"


def _read_traces_csv(path: Path) -> Tuple[List[str], List[Dict[str, str]]]:
    if not path.exists():
        raise FileNotFoundError(f"traces.csv not found: {path}")

    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValueError(f"traces.csv has no header: {path}")
        rows = [row for row in reader]
        return list(reader.fieldnames), rows


def _to_float_list(rows: List[Dict[str, str]], key: str) -> List[float]:
    out: List[float] = []
    for i, r in enumerate(rows):
        v = r.get(key, "")
        try:
            out.append(float(v))
        except ValueError as e:
            raise ValueError(f"could not parse float at row {i} column '{key}': {v!r}") from e
    return out


def plot_pressures_over_ticks(
    traces_csv: Path,
    out_png: Path,
    *,
    title: str | None = None,
) -> Path:
    """
    One line per node. Returns out_png for convenience.
    """
    header, rows = _read_traces_csv(traces_csv)
    if not rows:
        raise ValueError(f"traces.csv has no rows: {traces_csv}")
    if TICK_COLUMN not in header:
        raise KeyError(f"missing column '{TICK_COLUMN}'; available: {header}")

    pressure_cols = [h for h in header if h.startswith(PRESSURE_PREFIX)]
    if not pressure_cols:
        raise KeyError(f"no '{PRESSURE_PREFIX}*' columns; available: {header}")

    t = _to_float_list(rows, TICK_COLUMN)

    fig, ax = plt.subplots()
    for col in pressure_cols:
        ax.plot(t, _to_float_list(rows, col), label=col[len(PRESSURE_PREFIX):])
    ax.set_xlabel("tick")
    ax.set_ylabel("pressure (bar)")
    ax.set_title(title or "Node pressure per tick")
    if len(pressure_cols) <= 12:
        ax.legend(loc="best", fontsize="small")
    fig.tight_layout()

    out_png.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_png, dpi=150)
    plt.close(fig)

    return out_png


def plot_pressures_outputs_dir(outputs_dir: Path) -> Path:
    """
    Convenience helper:
      outputs/<scenario>/traces.csv -> outputs/<scenario>/plots/pressure_over_ticks.png
    """
    return plot_pressures_over_ticks(
        outputs_dir / "traces.csv",
        outputs_dir / "plots" / "pressure_over_ticks.png",
        title=f"Node pressure per tick - {outputs_dir.name}",
    )
