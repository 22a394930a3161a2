import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .metrics import compute_1d_weights, compute_contributions, weighted_correlation
from .selector import SelectionConfig, SelectionResult, adjacent_locks, select_components
from .ssa import Decomposition, assemble, decompose, elementary_reconstructions, embed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrSsaResult:
    """Усі проміжні та кінцеві результати одного запуску OR-SSA."""
    decomposition: Decomposition
    contributions: np.ndarray      # (r,)
    wcorr: np.ndarray              # (r, r)
    components: np.ndarray         # (r, N)
    selection: SelectionResult
    reconstruction: np.ndarray     # (N,)

    @property
    def rank(self):
        return self.decomposition.rank


def run_or_ssa(series, window_length, config: Optional[SelectionConfig] = None, svd=None):
    """
    Повний конвеєр OR-SSA:
    вкладення -> SVD -> елементарні компоненти -> внески та w-кореляції ->
    відбір компонент розв'язувачем -> складання реконструкції.

    :param svd: необов'язкова функція SVD для етапу розкладання (див. ssa.decompose)
    """
    config = (config or SelectionConfig()).validate()
    trajectory = embed(series, window_length)
    d = decompose(trajectory, svd=svd)
    if 0 < d.rank < config.r_min:
        raise ValueError(
            f"r_min={config.r_min} перевищує ранг траєкторної матриці {d.rank}: "
            f"потрібно r_min <= ранг")

    q = compute_contributions(d.singular_values)
    components = elementary_reconstructions(d)
    weights = compute_1d_weights(d.N, d.L, d.K)
    R = weighted_correlation(components, weights)

    locks = adjacent_locks(d.rank) if config.lock_adjacent_pairs else []
    selection = select_components(
        q, np.abs(R), locks,
        r_min=config.r_min,
        r_max=config.r_max,
        lam=config.lam,
        time_limit=config.time_limit,
        num_workers=config.num_workers,
        backend=config.backend,
    )
    reconstruction = assemble(components, selection.keep)
    logger.debug("OR-SSA: N=%d, L=%d, rank=%d, обрано %s",
                 d.N, d.L, d.rank, selection.selected.tolist())

    for array in (q, R, reconstruction):
        array.setflags(write=False)
    return OrSsaResult(
        decomposition=d,
        contributions=q,
        wcorr=R,
        components=components,
        selection=selection,
        reconstruction=reconstruction,
    )


__all__ = ["OrSsaResult", "run_or_ssa"]
