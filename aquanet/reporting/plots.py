# aquanet/reporting/plots.py
from __future__ import annotations

from pathlib import Path
from typing import Optional


def generate_plots(outputs_dir: Path) -> Optional[Path]:
    """
    Generate the pressure-over-ticks plot into outputs_dir/plots/.

    Returns the path to the plot if created, else None (matplotlib missing or no ticks).
    Raises if outputs_dir is missing (callers may choose to catch anyway).
    """
    outputs_dir = Path(outputs_dir)
    if not outputs_dir.exists():
        raise FileNotFoundError(f"outputs_dir not found: {outputs_dir}")

    # If matplotlib isn't installed, skip quietly (keeps core runnable).
    try:
        import matplotlib  # noqa: F401
    except ImportError:
        return None

    traces_csv = outputs_dir / "traces.csv"
    if not traces_csv.exists() or not traces_csv.read_text(encoding="utf-8").strip():
        return None

    from aquanet.visualization.pressure_plots import plot_pressures_outputs_dir

    return plot_pressures_outputs_dir(outputs_dir)
