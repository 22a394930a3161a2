from .metrics import compute_1d_weights, compute_contributions, mse, weighted_correlation
from .pipeline import OrSsaResult, run_or_ssa
from .selector import SelectionConfig, SelectionResult, adjacent_locks, select_components
from .solver import SolveStatus
from .ssa import (
    SSA,
    Decomposition,
    assemble,
    baseline_top_r,
    decompose,
    diagonal_average,
    elementary_reconstructions,
    embed,
)

__version__ = "0.1.0"

__all__ = [
    "SSA",
    "Decomposition",
    "OrSsaResult",
    "SelectionConfig",
    "SelectionResult",
    "SolveStatus",
    "adjacent_locks",
    "assemble",
    "baseline_top_r",
    "compute_1d_weights",
    "compute_contributions",
    "decompose",
    "diagonal_average",
    "elementary_reconstructions",
    "embed",
    "mse",
    "run_or_ssa",
    "select_components",
    "weighted_correlation",
]
