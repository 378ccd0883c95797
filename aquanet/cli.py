# aquanet/cli.py
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict

from aquanet.core.errors import ConfigError, EditError
from aquanet.core.runner import run_scenario


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(prog="aquanet", description="Run a water-network pressure/flow scenario.")
    ap.add_argument("yaml_path", type=str)

    ap.add_argument("--out", type=str, default=None, help="Output root directory (preferred)")
    ap.add_argument("--outputs-root", type=str, default=None, help="Output root directory (alias)")

    ap.add_argument("--ticks", type=int, default=None, help="Override run.ticks")
    ap.add_argument("--realtime", action="store_true", help="Sleep run.period_ms between ticks")
    ap.add_argument(
        "--log-level",
        type=str.upper,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    outputs_root = args.out or args.outputs_root or "outputs"

    # Apply CLI overrides into the normalized run section
    overrides: Dict[str, Any] = {}
    if args.ticks is not None:
        overrides["ticks"] = int(args.ticks)
    if args.realtime:
        overrides["realtime"] = True

    try:
        out_dir = run_scenario(Path(args.yaml_path), Path(outputs_root), overrides=overrides)
        print(f"wrote {out_dir}")
        return 0

    except ConfigError as e:
        print(str(e))
        return 2
    except EditError as e:
        print(str(e))
        return 3
