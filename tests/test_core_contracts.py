from __future__ import annotations

import json
from pathlib import Path
import subprocess
import sys

import pytest
import yaml

from aquanet.cli import main
from aquanet.core.config import normalize_config, validate_config
from aquanet.core.errors import ConfigError

REPO_ROOT = Path(__file__).resolve().parents[1]


def _run_cli(*args: str) -> subprocess.CompletedProcess:
    cmd = [sys.executable, "-m", "aquanet", *args]
    return subprocess.run(cmd, capture_output=True, text=True, cwd=str(REPO_ROOT))


def test_A_normalize_config_messy_defaults_and_derived(tmp_path: Path) -> None:
    messy = {
        "scenario_name": "valve_demo",
        "seed": 7,
        "ticks": 5,
        "network": {
            "nodes": [
                {"id": "R", "type": "Reservoir", "pressure": 80},
                {"id": 1, "type": "valve", "is_open": False},
                {"id": "J"},
            ],
            "pipes": [
                {"id": "p1", "from": "R", "to": 1, "diameter": 0.5},
                {"id": "p2", "source_id": 1, "target_id": "J"},
            ],
        },
        "events": [{"tick": 2, "valve": 1}],
    }

    normalized = normalize_config(messy, source_path=tmp_path / "x.yaml")

    assert normalized["scenario"]["name"] == "valve_demo"
    assert "seed" not in normalized["scenario"]
    assert normalized["scenario"]["output_dir"] == "outputs/valve_demo"

    # defaults filled
    assert normalized["run"] == {"ticks": 5, "period_ms": 100, "realtime": False}
    assert normalized["solver"]["max_iterations"] == 10
    assert normalized["solver"]["tolerance_bar"] == 0.01
    assert normalized["solver"]["valve_drop"] == 0.05
    assert normalized["solver"]["junction_drop"] == 0.05

    nodes = normalized["network"]["nodes"]
    assert nodes[0] == {"id": "R", "role": "reservoir", "pressure_bar": 80}
    assert nodes[1] == {"id": "1", "role": "valve", "open": False}
    assert nodes[2] == {"id": "J", "role": "junction"}

    edges = normalized["network"]["edges"]
    assert edges[0] == {"id": "p1", "source": "R", "target": "1", "diameter_m": 0.5}
    assert edges[1]["diameter_m"] == 1.0

    assert normalized["events"] == [{"tick": 2, "toggle_valve": "1"}]

    # stable canonical sections exist
    for k in ["scenario", "run", "solver", "network", "events"]:
        assert k in normalized

    validate_config(normalized)


def test_A_missing_network_falls_back_to_demo(tmp_path: Path) -> None:
    normalized = normalize_config({}, source_path=tmp_path / "starter.yaml")

    assert normalized["scenario"]["name"] == "starter"
    ids = [n["id"] for n in normalized["network"]["nodes"]]
    assert ids == ["reservoir-1", "valve-1", "junction-1", "valve-2", "junction-2"]
    assert len(normalized["network"]["edges"]) == 4
    validate_config(normalized)


def test_A_bad_yaml_raises_ConfigError_with_path_message_hint() -> None:
    bad = {
        "solverr": {"max_iterations": 3},  # typo top-level key
        "scenario": {"name": "x"},
        "run": {"ticks": -1},
    }

    # First unknown key should trip with hint
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(bad))
    e = ei.value
    assert e.path == "solverr"
    assert "unknown top-level key" in e.message
    assert e.hint is not None and "did you mean 'solver'" in e.hint


def _cfg(**network) -> dict:
    base = {
        "scenario": {"name": "t"},
        "network": {
            "nodes": [
                {"id": "R", "role": "reservoir", "pressure_bar": 50},
                {"id": "V", "role": "valve"},
                {"id": "J", "role": "junction"},
            ],
            "edges": [{"id": "e1", "source": "R", "target": "V"}, {"id": "e2", "source": "V", "target": "J"}],
        },
    }
    base["network"].update(network)
    return base


def test_A_unknown_role_suggests_closest() -> None:
    cfg = _cfg(nodes=[{"id": "R", "role": "resevoir", "pressure_bar": 1}])
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "network.nodes[0].role"
    assert ei.value.hint == "did you mean 'reservoir'?"


def test_A_edge_to_unknown_node_suggests_closest() -> None:
    cfg = _cfg(
        nodes=[{"id": "R", "role": "reservoir", "pressure_bar": 10}, {"id": "junction-a"}],
        edges=[{"id": "e1", "source": "R", "target": "junction-b"}],
    )
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "network.edges[0].target"
    assert "unknown node id 'junction-b'" in ei.value.message
    assert ei.value.hint == "did you mean 'junction-a'?"


@pytest.mark.parametrize(
    "patch,path",
    [
        ({"nodes": [{"id": "R", "role": "reservoir", "pressure_bar": 500}]}, "network.nodes[0].pressure_bar"),
        ({"nodes": [{"id": "R", "role": "reservoir"}]}, "network.nodes[0].pressure_bar"),
        ({"nodes": [{"id": "A"}, {"id": "A"}], "edges": []}, "network.nodes[1].id"),
        ({"edges": [{"id": "e1", "source": "R", "target": "V", "diameter_m": 0}]}, "network.edges[0].diameter_m"),
        ({"edges": [{"id": "e1", "source": "R", "target": "V", "diameter_m": 9}]}, "network.edges[0].diameter_m"),
    ],
)
def test_A_network_validation_paths(patch: dict, path: str) -> None:
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(_cfg(**patch)))
    assert ei.value.path == path


def test_A_legacy_seed_is_dropped() -> None:
    normalized = normalize_config(_cfg(), source_path=None)
    assert "seed" not in normalized["scenario"]

    cfg = _cfg()
    cfg["scenario"]["seed"] = "anything"
    normalized = normalize_config(cfg)
    assert "seed" not in normalized["scenario"]
    validate_config(normalized)


def test_A_pipe_from_node_to_itself_is_rejected() -> None:
    cfg = _cfg(
        nodes=[{"id": "R", "role": "reservoir", "pressure_bar": 100}, {"id": "J"}],
        edges=[{"id": "e1", "source": "R", "target": "J"}, {"id": "loop", "source": "J", "target": "J"}],
    )
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "network.edges[1].target"
    assert "to itself" in ei.value.message


@pytest.mark.parametrize("second", [("R", "J"), ("J", "R")])
def test_A_second_pipe_between_same_nodes_is_rejected(second) -> None:
    cfg = _cfg(
        nodes=[{"id": "R", "role": "reservoir", "pressure_bar": 100}, {"id": "J"}],
        edges=[
            {"id": "e1", "source": "R", "target": "J"},
            {"id": "e2", "source": second[0], "target": second[1]},
        ],
    )
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "network.edges[1].target"
    assert "already connected by 'e1'" in ei.value.message


def test_A_event_must_target_a_valve_within_run() -> None:
    cfg = _cfg()
    cfg["run"] = {"ticks": 3}

    cfg["events"] = [{"tick": 1, "toggle_valve": "J"}]
    with pytest.raises(ConfigError, match="not a valve"):
        validate_config(normalize_config(cfg))

    cfg["events"] = [{"tick": 3, "toggle_valve": "V"}]
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "events[0].tick"

    cfg["events"] = [{"tick": 0, "toggle_valve": "V"}]
    validate_config(normalize_config(cfg))


def test_A_solver_section_is_checked() -> None:
    cfg = _cfg()
    cfg["solver"] = {"junction_drop": 1.5}
    with pytest.raises(ConfigError) as ei:
        validate_config(normalize_config(cfg))
    assert ei.value.path == "solver.junction_drop"


def test_A_config_error_str_is_readable() -> None:
    s = str(ConfigError("run.ticks", "must be a non-negative integer", "try 20"))
    assert s.splitlines() == ["Config error at run.ticks:", "  must be a non-negative integer", "hint:", "  try 20"]


def test_B_output_contract_and_config_is_normalized(tmp_path: Path) -> None:
    # Create a messy YAML file
    yml = tmp_path / "demo.yaml"
    yml.write_text(
        """
scenario_name: starter_network
seed: 0
ticks: 3
""".strip()
        + "\n",
        encoding="utf-8",
    )

    # Run CLI with outputs redirected to tmp_path/outputs
    outputs_root = tmp_path / "outputs"
    cp = _run_cli(str(yml), "--outputs-root", str(outputs_root))
    assert cp.returncode == 0, cp.stderr + cp.stdout

    out_dir = outputs_root / "starter_network"
    assert (out_dir / "config.yaml").exists()
    assert (out_dir / "solution.json").exists()
    assert (out_dir / "report.md").exists()
    assert (out_dir / "traces.csv").exists()

    # config.yaml should be the *normalized* config, not raw
    cfg_written = yaml.safe_load((out_dir / "config.yaml").read_text(encoding="utf-8"))
    assert cfg_written["solver"]["max_iterations"] == 10  # default filled by normalize_config
    assert cfg_written["scenario"]["output_dir"] == "outputs/starter_network"
    assert len(cfg_written["network"]["nodes"]) == 5

    traces = (out_dir / "traces.csv").read_text(encoding="utf-8").strip().splitlines()
    assert len(traces) == 1 + 3
    assert "pressure_bar.junction-1" in traces[0].split(",")


def test_B_cli_ticks_override(tmp_path: Path) -> None:
    yml = tmp_path / "short.yaml"
    yml.write_text("scenario:\n  name: short\nrun:\n  ticks: 50\n", encoding="utf-8")

    cp = _run_cli(str(yml), "--out", str(tmp_path / "outputs"), "--ticks", "2", "--log-level", "debug")
    assert cp.returncode == 0, cp.stderr + cp.stdout
    assert "wrote" in cp.stdout

    out_dir = tmp_path / "outputs" / "short"
    sol = json.loads((out_dir / "solution.json").read_text(encoding="utf-8"))
    assert sol["ticks"] == 2
    cfg_written = yaml.safe_load((out_dir / "config.yaml").read_text(encoding="utf-8"))
    assert cfg_written["run"]["ticks"] == 2
    assert "iteration 1: max_abs_change" in cp.stderr


def test_B_cli_reports_config_error_with_exit_code_2(tmp_path: Path) -> None:
    yml = tmp_path / "bad.yaml"
    yml.write_text("scenario:\n  name: bad\nnetwrok: {}\n", encoding="utf-8")

    cp = _run_cli(str(yml), "--out", str(tmp_path / "outputs"))

    assert cp.returncode == 2
    assert "Config error at netwrok" in cp.stdout
    assert "did you mean 'network'?" in cp.stdout
    assert not (tmp_path / "outputs" / "bad").exists()


def test_C_golden_path_deterministic(tmp_path: Path) -> None:
    yml = tmp_path / "demo.yaml"
    yml.write_text(
        """
scenario:
  name: toggle_demo
  seed: 123
run:
  ticks: 6
network:
  nodes:
    - {id: R, role: reservoir, pressure_bar: 100}
    - {id: V, role: valve, open: true}
    - {id: J, role: junction}
  edges:
    - {id: RV, source: R, target: V, diameter_m: 1.0}
    - {id: VJ, source: V, target: J, diameter_m: 0.5}
events:
  - {tick: 2, toggle_valve: V}
  - {tick: 4, toggle_valve: V}
""".strip()
        + "\n",
        encoding="utf-8",
    )

    def run_once(tag: str) -> Path:
        outputs_root = tmp_path / f"outputs_{tag}"
        cp = _run_cli(str(yml), "--out", str(outputs_root))
        assert cp.returncode == 0, cp.stderr + cp.stdout
        return outputs_root / "toggle_demo"

    out1 = run_once("a")
    out2 = run_once("b")

    # Compare key results
    s1 = json.loads((out1 / "solution.json").read_text(encoding="utf-8"))
    s2 = json.loads((out2 / "solution.json").read_text(encoding="utf-8"))
    for k in ["converged", "iterations", "pressures", "flow_rates", "valves", "per_tick"]:
        assert s1[k] == s2[k]

    assert s1["valves"] == {"V": "open"}
    assert s1["pressures"]["J"] == pytest.approx(92.625)
    assert s1["per_tick"][2]["iterations"] == 1

    # report headline section identical
    r1 = (out1 / "report.md").read_text(encoding="utf-8").splitlines()[:10]
    r2 = (out2 / "report.md").read_text(encoding="utf-8").splitlines()[:10]
    assert r1 == r2

    t1 = (out1 / "traces.csv").read_text(encoding="utf-8").strip().splitlines()
    t2 = (out2 / "traces.csv").read_text(encoding="utf-8").strip().splitlines()
    assert len(t1) == len(t2) == 7
    assert "\n".join(t1) == "\n".join(t2)


def test_B_cli_rejects_unknown_log_level(tmp_path: Path, capsys) -> None:
    yml = tmp_path / "demo.yaml"
    yml.write_text("scenario:\n  name: demo\n", encoding="utf-8")

    with pytest.raises(SystemExit) as ei:
        main([str(yml), "--out", str(tmp_path / "outputs"), "--log-level", "LOUD"])

    assert ei.value.code == 2
    assert "--log-level" in capsys.readouterr().err
    assert not (tmp_path / "outputs").exists()
