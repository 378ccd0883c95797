# aquanet/simulation.py
"""
Periodic simulation host.

Calls the pure solver once per tick on a fresh snapshot from the editor and
writes the result back. Ticks never overlap: a second tick() while one is in
progress raises instead of interleaving.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from aquanet.core.types import SolveResult, SolverSettings
from aquanet.network.editor import NetworkEditor
from aquanet.network.solver import solve

logger = logging.getLogger(__name__)

TickCallback = Callable[[int, SolveResult], None]


@dataclass(frozen=True)
class ValveToggle:
    """Flip valve `node_id` just before tick `tick` is solved."""
    tick: int
    node_id: str


class Simulation:
    def __init__(
        self,
        editor: NetworkEditor,
        settings: Optional[SolverSettings] = None,
        period_s: float = 0.1,
    ) -> None:
        if period_s <= 0:
            raise ValueError(f"period_s must be > 0, got {period_s}")
        self.editor = editor
        self.settings = settings or SolverSettings()
        self.period_s = float(period_s)
        self.tick_count = 0
        self.last_result: Optional[SolveResult] = None
        self._lock = threading.Lock()

    def tick(self) -> SolveResult:
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("a tick is already in progress; ticks must not overlap")
        try:
            result = solve(self.editor.snapshot(), self.settings)
            self.editor.apply_result(result)
            self.last_result = result
            logger.debug(
                "tick %d: iterations=%d converged=%s",
                self.tick_count, result.iterations, result.converged,
            )
            self.tick_count += 1
            return result
        finally:
            self._lock.release()

    def run(
        self,
        n_ticks: int,
        events: Iterable[ValveToggle] = (),
        on_tick: Optional[TickCallback] = None,
        realtime: bool = False,
    ) -> List[SolveResult]:
        """
        Run n_ticks ticks with the editor marked running, then stop it.

        Events scheduled for tick i are applied (in the given order) before tick i.
        """
        if n_ticks < 0:
            raise ValueError(f"n_ticks must be >= 0, got {n_ticks}")

        by_tick: Dict[int, List[ValveToggle]] = {}
        for ev in events:
            by_tick.setdefault(int(ev.tick), []).append(ev)

        results: List[SolveResult] = []
        self.editor.start()
        logger.info("simulation started (%d ticks, period %.3fs)", n_ticks, self.period_s)
        try:
            for i in range(n_ticks):
                for ev in by_tick.get(i, []):
                    is_open = self.editor.toggle_valve(ev.node_id)
                    logger.info("tick %d: valve %s -> %s", i, ev.node_id, "open" if is_open else "closed")

                started = time.monotonic()
                result = self.tick()
                results.append(result)
                if on_tick is not None:
                    on_tick(i, result)

                if realtime and i < n_ticks - 1:
                    remaining = self.period_s - (time.monotonic() - started)
                    if remaining > 0:
                        time.sleep(remaining)
        finally:
            self.editor.stop()
            logger.info("simulation stopped after %d tick(s)", len(results))

        return results
