# aquanet/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
import difflib

import yaml

from aquanet.core.errors import ConfigError
from aquanet.core.types import (
    CONVERGENCE_TOLERANCE_BAR,
    DEFAULT_DIAMETER_M,
    DIAMETER_MAX_M,
    JUNCTION_PRESSURE_DROP,
    MAX_ITERATIONS,
    RESERVOIR_PRESSURE_MAX_BAR,
    RESERVOIR_PRESSURE_MIN_BAR,
    VALVE_PRESSURE_DROP,
    NodeRole,
    is_finite_number,
)
from aquanet.network.editor import NetworkEditor
from aquanet.network.model import NetworkSnapshot


CANONICAL_TOP_LEVEL_KEYS = ("scenario", "run", "solver", "network", "events")
ROLE_NAMES = tuple(r.value for r in NodeRole)


def _as_dict(obj: Any, path: str) -> Dict[str, Any]:
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ConfigError(path, f"expected a mapping/object, got {type(obj).__name__}")
    return obj


def _as_list(obj: Any, path: str) -> List[Any]:
    if obj is None:
        return []
    if not isinstance(obj, list):
        raise ConfigError(path, f"expected a list, got {type(obj).__name__}")
    return obj


def _require_str(d: Mapping[str, Any], key: str, path: str) -> str:
    v = d.get(key)
    if not isinstance(v, str) or not v.strip():
        raise ConfigError(f"{path}.{key}", "expected a non-empty string")
    return v.strip()


def _require_num(d: Mapping[str, Any], key: str, path: str) -> float:
    v = d.get(key)
    if not is_finite_number(v):
        raise ConfigError(f"{path}.{key}", f"expected a finite number, got {v!r}")
    return float(v)


def _suggest_key(bad_key: str, allowed: Tuple[str, ...]) -> Optional[str]:
    close = difflib.get_close_matches(bad_key, allowed, n=1, cutoff=0.7)
    return close[0] if close else None


def _did_you_mean(bad_key: str, allowed: Tuple[str, ...]) -> Optional[str]:
    suggestion = _suggest_key(bad_key, allowed)
    return f"did you mean '{suggestion}'?" if suggestion else None


def _first(d: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def load_yaml(path: Path) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError("yaml", f"failed to parse YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("yaml", f"top-level YAML must be a mapping/object, got {type(raw).__name__}")
    return raw


def canonical_yaml_dump(data: Mapping[str, Any]) -> str:
    """
    Stable dump: sorted keys + deterministic formatting.
    """
    return yaml.safe_dump(
        data,
        sort_keys=True,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def network_to_config(snapshot: NetworkSnapshot) -> Dict[str, Any]:
    """
    Canonical `network:` section for an existing snapshot.
    """
    nodes: List[Dict[str, Any]] = []
    for n in snapshot.nodes.values():
        entry: Dict[str, Any] = {"id": n.id, "role": n.role.value}
        if n.role == NodeRole.RESERVOIR:
            entry["pressure_bar"] = float(n.pressure)
        if n.role == NodeRole.VALVE:
            entry["open"] = bool(n.is_open)
        nodes.append(entry)
    edges = [
        {"id": e.id, "source": e.source_id, "target": e.target_id, "diameter_m": float(e.diameter)}
        for e in snapshot.edges.values()
    ]
    return {"nodes": nodes, "edges": edges}


def _id_str(v: Any) -> Any:
    # YAML happily reads `id: 1` as an int
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


def _normalize_node(raw: Any, path: str) -> Dict[str, Any]:
    d = _as_dict(raw, path)
    out: Dict[str, Any] = {
        "id": _id_str(d.get("id")),
        "role": _first(d, "role", "type", default="junction"),
    }
    if isinstance(out["role"], str):
        out["role"] = out["role"].strip().lower()
    if out["role"] == NodeRole.RESERVOIR.value:
        out["pressure_bar"] = _first(d, "pressure_bar", "pressure")
    if out["role"] == NodeRole.VALVE.value:
        out["open"] = _first(d, "open", "is_open", default=True)
    return out


def _normalize_edge(raw: Any, path: str) -> Dict[str, Any]:
    d = _as_dict(raw, path)
    return {
        "id": _id_str(d.get("id")),
        "source": _id_str(_first(d, "source", "from", "source_id")),
        "target": _id_str(_first(d, "target", "to", "target_id")),
        "diameter_m": _first(d, "diameter_m", "diameter", default=DEFAULT_DIAMETER_M),
    }


def _normalize_event(raw: Any, path: str) -> Dict[str, Any]:
    d = _as_dict(raw, path)
    return {
        "tick": d.get("tick"),
        "toggle_valve": _id_str(_first(d, "toggle_valve", "valve")),
    }


def normalize_config(raw: Mapping[str, Any], *, source_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Accepts "messy but acceptable" YAML and returns a canonical dict:
      - scenario/run/solver/network/events
      - defaults filled
      - derived fields computed (scenario.name, scenario.output_dir)
      - missing network -> the starter demo network
    """
    raw = _as_dict(raw, "yaml")

    # --- Gather legacy shortcuts ---
    scenario_name = raw.get("scenario_name") or raw.get("name")

    scenario = dict(_as_dict(raw.get("scenario"), "scenario"))
    run = dict(_as_dict(raw.get("run"), "run"))
    solver = dict(_as_dict(raw.get("solver"), "solver"))

    for k in ("ticks", "period_ms", "realtime"):
        if k in raw and k not in run:
            run[k] = raw[k]
    # legacy key, dropped
    scenario.pop("seed", None)

    if "name" not in scenario and scenario_name:
        scenario["name"] = scenario_name
    if "name" not in scenario:
        scenario["name"] = source_path.stem if source_path is not None else "scenario"

    # defaults
    run.setdefault("ticks", 20)
    run.setdefault("period_ms", 100)
    run.setdefault("realtime", False)

    solver.setdefault("max_iterations", MAX_ITERATIONS)
    solver.setdefault("tolerance_bar", CONVERGENCE_TOLERANCE_BAR)
    solver.setdefault("valve_drop", VALVE_PRESSURE_DROP)
    solver.setdefault("junction_drop", JUNCTION_PRESSURE_DROP)

    # derived output dir (relative, so tests can redirect with cwd)
    scenario["output_dir"] = f"outputs/{scenario['name']}"

    # --- Network ---
    net_raw = raw.get("network")
    if net_raw is None:
        network = network_to_config(NetworkEditor.demo().snapshot())
    else:
        net = _as_dict(net_raw, "network")
        raw_nodes = _as_list(net.get("nodes"), "network.nodes")
        raw_edges = _as_list(_first(net, "edges", "pipes", "links", default=[]), "network.edges")
        network = {
            "nodes": [_normalize_node(n, f"network.nodes[{i}]") for i, n in enumerate(raw_nodes)],
            "edges": [_normalize_edge(e, f"network.edges[{i}]") for i, e in enumerate(raw_edges)],
        }

    events = [
        _normalize_event(ev, f"events[{i}]")
        for i, ev in enumerate(_as_list(raw.get("events"), "events"))
    ]

    # Unknown keys are carried through so validate_config() can point at them.
    extras = {
        k: v for k, v in raw.items()
        if k not in CANONICAL_TOP_LEVEL_KEYS
        and k not in ("scenario_name", "name", "seed", "ticks", "period_ms", "realtime")
    }

    normalized: Dict[str, Any] = {
        "scenario": scenario,
        "run": run,
        "solver": solver,
        "network": network,
        "events": events,
    }
    normalized.update(extras)
    return normalized


def _validate_network(network: Mapping[str, Any]) -> Dict[str, str]:
    """
    Returns node id -> role for later checks.
    """
    nodes = _as_list(network.get("nodes"), "network.nodes")
    edges = _as_list(network.get("edges"), "network.edges")

    roles: Dict[str, str] = {}
    for i, n in enumerate(nodes):
        path = f"network.nodes[{i}]"
        n = _as_dict(n, path)
        nid = _require_str(n, "id", path)
        if nid in roles:
            raise ConfigError(f"{path}.id", f"duplicate node id '{nid}'")

        role = n.get("role")
        if role not in ROLE_NAMES:
            hint = _did_you_mean(str(role), ROLE_NAMES) or f"expected one of {list(ROLE_NAMES)}"
            raise ConfigError(f"{path}.role", f"unknown node role {role!r}", hint)

        if role == NodeRole.RESERVOIR.value:
            p = _require_num(n, "pressure_bar", path)
            if not RESERVOIR_PRESSURE_MIN_BAR <= p <= RESERVOIR_PRESSURE_MAX_BAR:
                raise ConfigError(
                    f"{path}.pressure_bar",
                    f"must be in [{RESERVOIR_PRESSURE_MIN_BAR:g}, {RESERVOIR_PRESSURE_MAX_BAR:g}] bar (got {p:g})",
                )
        if role == NodeRole.VALVE.value and not isinstance(n.get("open"), bool):
            raise ConfigError(f"{path}.open", f"expected true/false, got {n.get('open')!r}")

        roles[nid] = role

    node_ids = tuple(roles.keys())
    edge_ids = set()
    connected: Dict[FrozenSet[str], str] = {}
    for i, e in enumerate(edges):
        path = f"network.edges[{i}]"
        e = _as_dict(e, path)
        eid = _require_str(e, "id", path)
        if eid in edge_ids:
            raise ConfigError(f"{path}.id", f"duplicate edge id '{eid}'")
        edge_ids.add(eid)

        for end in ("source", "target"):
            ref = _require_str(e, end, path)
            if ref not in roles:
                raise ConfigError(f"{path}.{end}", f"unknown node id '{ref}'", _did_you_mean(ref, node_ids))

        src, tgt = e["source"].strip(), e["target"].strip()
        if src == tgt:
            raise ConfigError(f"{path}.target", f"pipe '{eid}' connects node '{src}' to itself")
        pair = frozenset((src, tgt))
        if pair in connected:
            raise ConfigError(
                f"{path}.target",
                f"'{src}' and '{tgt}' are already connected by '{connected[pair]}'",
            )
        connected[pair] = eid

        d = _require_num(e, "diameter_m", path)
        if not 0.0 < d <= DIAMETER_MAX_M:
            raise ConfigError(f"{path}.diameter_m", f"must be in (0, {DIAMETER_MAX_M:g}] m (got {d:g})")

    return roles


def validate_config(cfg: Mapping[str, Any]) -> None:
    """
    Friendly validation of a normalized config. Raises ConfigError on the first problem.
    """
    cfg = _as_dict(cfg, "cfg")

    for k in cfg.keys():
        if k not in CANONICAL_TOP_LEVEL_KEYS:
            raise ConfigError(k, f"unknown top-level key '{k}'", _did_you_mean(k, CANONICAL_TOP_LEVEL_KEYS))

    scenario = _as_dict(cfg.get("scenario"), "scenario")
    run = _as_dict(cfg.get("run"), "run")
    solver = _as_dict(cfg.get("solver"), "solver")

    _require_str(scenario, "name", "scenario")

    ticks = run.get("ticks")
    if not isinstance(ticks, int) or isinstance(ticks, bool) or ticks < 0:
        raise ConfigError("run.ticks", "must be a non-negative integer")

    period = run.get("period_ms")
    if not is_finite_number(period) or float(period) <= 0:
        raise ConfigError("run.period_ms", "must be a positive number")

    if not isinstance(run.get("realtime"), bool):
        raise ConfigError("run.realtime", f"expected true/false, got {run.get('realtime')!r}")

    iters = solver.get("max_iterations")
    if not isinstance(iters, int) or isinstance(iters, bool) or iters <= 0:
        raise ConfigError("solver.max_iterations", "must be a positive integer")

    if _require_num(solver, "tolerance_bar", "solver") <= 0:
        raise ConfigError("solver.tolerance_bar", "must be a positive number")

    for k in ("valve_drop", "junction_drop"):
        v = _require_num(solver, k, "solver")
        if not 0.0 <= v < 1.0:
            raise ConfigError(f"solver.{k}", f"must be in [0, 1) (got {v:g})")

    roles = _validate_network(_as_dict(cfg.get("network"), "network"))

    valves = tuple(nid for nid, role in roles.items() if role == NodeRole.VALVE.value)
    for i, ev in enumerate(_as_list(cfg.get("events"), "events")):
        path = f"events[{i}]"
        ev = _as_dict(ev, path)
        tick = ev.get("tick")
        if not isinstance(tick, int) or isinstance(tick, bool) or not 0 <= tick < ticks:
            raise ConfigError(f"{path}.tick", f"must be an integer in [0, {ticks}) (got {tick!r})")
        target = _require_str(ev, "toggle_valve", path)
        if target not in roles:
            raise ConfigError(f"{path}.toggle_valve", f"unknown node id '{target}'", _did_you_mean(target, valves))
        if roles[target] != NodeRole.VALVE.value:
            raise ConfigError(f"{path}.toggle_valve", f"node '{target}' is a {roles[target]}, not a valve")
