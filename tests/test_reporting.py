# tests/test_reporting.py
from __future__ import annotations

from pathlib import Path

import pytest

from aquanet.network.editor import NetworkEditor
from aquanet.reporting.plots import generate_plots
from aquanet.reporting.report_md import render_report_md
from aquanet.simulation import Simulation


def test_report_lists_every_node_and_pipe() -> None:
    ed = NetworkEditor.demo()
    results = Simulation(ed).run(2)

    md = render_report_md({"name": "demo"}, ed.snapshot(), results)

    assert md.splitlines()[0] == "# Water Network Simulation Report - demo"
    for section in ("## Summary", "## Node pressures", "## Pipe flows", "## Convergence per tick"):
        assert section in md
    for nid in ("reservoir-1", "valve-1", "junction-1", "valve-2", "junction-2"):
        assert f"| {nid} |" in md
    for eid in ("edge-1", "edge-2", "edge-3", "edge-4"):
        assert f"| {eid} |" in md
    assert "| valve-1 | valve | open |" in md
    assert "- **ticks:** 2" in md


def test_report_without_ticks() -> None:
    md = render_report_md({"name": "empty"}, NetworkEditor.demo().snapshot(), [])
    assert "- (no ticks were run)" in md
    assert "- (no ticks)" in md
    assert "| reservoir-1 | reservoir |  | n/a |" in md


def test_report_flow_direction_column() -> None:
    ed = NetworkEditor()
    ed.add_node("reservoir", pressure=50.0, node_id="R")
    ed.add_node("junction", node_id="J")
    ed.add_edge("J", "R", edge_id="back")
    results = Simulation(ed).run(1)

    md = render_report_md({"name": "dir"}, ed.snapshot(), results)
    assert "target -> source" in md


def test_generate_plots_requires_existing_dir(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        generate_plots(tmp_path / "missing")


def test_generate_plots_skips_empty_traces(tmp_path: Path) -> None:
    (tmp_path / "traces.csv").write_text("", encoding="utf-8")
    assert generate_plots(tmp_path) is None


def test_generate_plots_writes_png(tmp_path: Path) -> None:
    pytest.importorskip("matplotlib")
    (tmp_path / "traces.csv").write_text(
        "converged,iterations,pressure_bar.J,pressure_bar.R,tick\n"
        "0,10,10.5,100,0\n"
        "1,3,92.625,100,1\n",
        encoding="utf-8",
    )

    out = generate_plots(tmp_path)

    assert out == tmp_path / "plots" / "pressure_over_ticks.png"
    assert out.exists() and out.stat().st_size > 0


def test_plot_failure_is_logged_and_contract_still_written(tmp_path: Path, monkeypatch, caplog) -> None:
    import aquanet.reporting.plots as plots
    from aquanet.core.output import RunArtifacts, write_output_contract

    def broken(outputs_dir):
        raise RuntimeError("no display")

    monkeypatch.setattr(plots, "generate_plots", broken)
    artifacts = RunArtifacts(
        normalized_config={"scenario": {"name": "p"}},
        solution={"ticks": 1},
        report_md="# report",
        traces_rows=[{"tick": 0, "pressure_bar.R": 1.0}],
    )

    with caplog.at_level("WARNING", logger="aquanet.core.output"):
        out_dir = write_output_contract(tmp_path, "p", artifacts)

    for name in ("config.yaml", "solution.json", "report.md", "traces.csv"):
        assert (out_dir / name).exists()
    assert "plot generation skipped" in caplog.text
    assert "RuntimeError: no display" in caplog.text
