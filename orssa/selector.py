"""
Вибір підмножини SSA-компонент як 0/1-програма (ядро OR-SSA).

    max  Σ q_i z_i − λ Σ_{i<j} |R_ij| y_ij
    s.t. r_min <= Σ z_i <= r_max
         y_ij = z_i ∧ z_j          (лінеаризація)
         z_i = z_j                 для кожної «зчепленої» пари (i, j)

Коефіцієнти переводяться у цілі числа множенням на SCALE, бо розв'язувачі
працюють з цілими ваговими коефіцієнтами; значення цілі повертається
у вихідному масштабі.
"""
import logging
import math
from dataclasses import dataclass

import numpy as np

from .solver import BACKENDS, BooleanModel, SolveStatus, get_backend, linearize_and

logger = logging.getLogger(__name__)

SCALE = 1_000_000


@dataclass(frozen=True)
class SelectionConfig:
    """Гіперпараметри селектора (типові значення – як у графічній програмі)."""
    r_min: int = 2
    r_max: int = 6
    lam: float = 0.10
    lock_adjacent_pairs: bool = True
    time_limit: int = 5
    num_workers: int = 8
    backend: str = "highs"

    def validate(self):
        _validate(self.r_min, self.r_max, self.lam, self.time_limit)
        if int(self.num_workers) != self.num_workers or self.num_workers < 1:
            raise ValueError(f"num_workers={self.num_workers} має бути цілим >= 1")
        if self.backend not in BACKENDS:
            raise ValueError(f"Невідомий розв'язувач '{self.backend}', доступні: {sorted(BACKENDS)}")
        return self


def _validate(r_min, r_max, lam, time_limit):
    for name, value in (("r_min", r_min), ("r_max", r_max), ("time_limit", time_limit)):
        if isinstance(value, bool) or int(value) != value:
            raise ValueError(f"{name}={value!r} має бути цілим")
    if r_min < 0:
        raise ValueError(f"r_min={r_min} не може бути від'ємним")
    if r_min > r_max:
        raise ValueError(f"r_min={r_min} більше за r_max={r_max}")
    if not math.isfinite(lam) or lam < 0:
        raise ValueError(f"lam={lam} має бути скінченним і невід'ємним")
    if time_limit <= 0:
        raise ValueError(f"time_limit={time_limit} має бути додатним")


@dataclass(frozen=True)
class SelectionResult:
    keep: np.ndarray
    status: SolveStatus
    objective: float
    best_bound: float = 0.0
    num_branches: int = 0
    num_conflicts: int = 0
    wall_time: float = 0.0

    @property
    def selected(self):
        return np.flatnonzero(self.keep)

    @property
    def num_selected(self):
        return int(self.keep.sum())


def adjacent_locks(rank):
    """Пари (0, 1), (2, 3), ... – синус/косинус зазвичай ідуть поруч."""
    return [(i, i + 1) for i in range(0, rank - 1, 2)]


def _check_locks(locked_pairs, r):
    locks = []
    for i, j in locked_pairs or ():
        if not (0 <= i < r and 0 <= j < r):
            raise ValueError(f"Пара ({i}, {j}) виходить за межі [0, {r})")
        if i == j:
            raise ValueError(f"Пара ({i}, {j}) зчеплює компоненту саму з собою")
        locks.append((int(i), int(j)))
    return locks


def build_model(q, abs_r, locks, r_min, r_max, lam):
    """Будує BooleanModel; повертає (модель, індекси змінних z)."""
    r = len(q)
    model = BooleanModel("component_selection")
    z = [model.new_bool_var(f"z_{i}") for i in range(r)]

    model.add_range([(zi, 1) for zi in z], r_min, r_max)
    for i, j in locks:
        model.add_eq([(z[i], 1), (z[j], -1)], 0)

    terms = []
    for i in range(r):
        c = int(round(q[i] * SCALE))
        if c != 0:
            terms.append((z[i], c))
    # Пара з нульовим штрафом не впливає на ціль, тому y_ij для неї не потрібна.
    for i in range(r):
        for j in range(i + 1, r):
            c = int(round(lam * abs(abs_r[i, j]) * SCALE))
            if c != 0:
                y = linearize_and(model, z[i], z[j], f"y_{i}_{j}")
                terms.append((y, -c))
    model.maximize(terms)
    return model, z


def select_components(q, abs_r, locked_pairs=None, r_min=2, r_max=6, lam=0.10,
                      time_limit=5, num_workers=8, backend="highs"):
    """
    Відбирає компоненти, максимізуючи енергію мінус штраф за надлишковість.

    :param q: вектор внесків довжини r
    :param abs_r: матриця |w-кореляцій| r x r
    :param locked_pairs: пари індексів, що обираються або відкидаються разом
    :return: SelectionResult; недопустимість чи відсутність доведення
             оптимальності повідомляються через status, а не винятком
    """
    _validate(r_min, r_max, lam, time_limit)
    q = np.asarray(q, dtype=float)
    abs_r = np.abs(np.asarray(abs_r, dtype=float))
    r = q.shape[0]
    if abs_r.shape != (r, r):
        raise ValueError(f"Матриця кореляцій має форму {abs_r.shape}, очікується ({r}, {r})")
    locks = _check_locks(locked_pairs, r)

    if r == 0:
        keep = np.zeros(0, dtype=bool)
        keep.setflags(write=False)
        return SelectionResult(keep=keep, status=SolveStatus.NOT_SOLVED, objective=0.0)
    if r_min > r:
        logger.warning("r_min=%d перевищує ранг %d, модель недопустима", r_min, r)

    model, z = build_model(q, abs_r, locks, r_min, r_max, lam)
    solution = get_backend(backend).solve(model, time_limit, num_workers)

    keep = solution.values[z].copy()
    keep.setflags(write=False)
    log = logger.info if solution.status.has_solution else logger.warning
    log("Відбір компонент: %s, ціль=%.6f, обрано %d з %d за %.3fs",
        solution.status.value, solution.objective / SCALE, int(keep.sum()), r,
        solution.wall_time)
    return SelectionResult(
        keep=keep,
        status=solution.status,
        objective=solution.objective / SCALE,
        best_bound=solution.best_bound / SCALE,
        num_branches=solution.num_branches,
        num_conflicts=solution.num_conflicts,
        wall_time=solution.wall_time,
    )


__all__ = [
    "SCALE",
    "SelectionConfig",
    "SelectionResult",
    "adjacent_locks",
    "build_model",
    "select_components",
]
