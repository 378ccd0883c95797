"""
aquanet: live pressure/flow approximation for graph-shaped water networks.

    from aquanet import NetworkEditor, solve

    editor = NetworkEditor.demo()
    result = solve(editor.snapshot())
"""

from aquanet.core.types import Edge, Node, NodeRole, SolveResult, SolverSettings
from aquanet.network.editor import NetworkEditor
from aquanet.network.model import NetworkSnapshot
from aquanet.network.solver import solve
from aquanet.simulation import Simulation, ValveToggle

__version__ = "0.1.0"

__all__ = [
    "Edge",
    "NetworkEditor",
    "NetworkSnapshot",
    "Node",
    "NodeRole",
    "Simulation",
    "SolveResult",
    "SolverSettings",
    "ValveToggle",
    "solve",
]
