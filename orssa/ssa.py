import logging
from dataclasses import dataclass

import numpy as np
from scipy import linalg

from .metrics import compute_contributions

logger = logging.getLogger(__name__)

# Відносний поріг чисельного рангу: tol = max(L, K) * RANK_RTOL * max(σ₀, 1e-30).
RANK_RTOL = 1e-12
SIGMA_FLOOR = 1e-30


def _freeze(array):
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class Decomposition:
    """
    Результат сингулярного розкладання траєкторної матриці.

    Зберігає лише r «значущих» елементарних трійок (u_i, σ_i, v_i),
    впорядкованих за спаданням σ_i. Масиви доступні тільки для читання.
    """
    N: int
    L: int
    K: int
    rank: int
    singular_values: np.ndarray   # (r,)
    U: np.ndarray                 # (L, r), стовпці u_i
    V: np.ndarray                 # (K, r), стовпці v_i
    trajectory: np.ndarray        # (L, K)

    def triplet(self, i):
        return self.U[:, i], self.singular_values[i], self.V[:, i]


def embed(series, window_length):
    """
    Етап 1. Вкладення (Embedding).

    Будує траєкторну (ганкелеву) матрицю X розміру L x K, X[i, j] = series[i + j],
    де K = N - L + 1.
    """
    x = np.asarray(series, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"Очікується одномірний ряд, отримано форму {x.shape}")
    N = x.shape[0]
    if N < 4:
        raise ValueError(f"Довжина ряду N={N} менша за мінімальну 4")
    if not np.all(np.isfinite(x)):
        raise ValueError("Ряд містить NaN або нескінченні значення")
    L = int(window_length)
    if L != window_length or not 2 <= L <= N - 1:
        raise ValueError(f"Довжина вікна L={window_length} має бути цілою в [2, {N - 1}]")

    K = N - L + 1
    rows = np.arange(L)[:, None]
    cols = np.arange(K)[None, :]
    return _freeze(x[rows + cols])


def decompose(trajectory, svd=None):
    """
    Етап 2. Сингулярне розкладання (SVD).

    Повне SVD матриці X = U Σ Vᵗ з відкиданням сингулярних значень, що не
    перевищують tol = max(L, K) · 1e-12 · max(σ₀, 1e-30). Це прибирає
    чисельний шум розкладання, а не шум самого ряду.

    :param svd: функція з інтерфейсом scipy.linalg.svd(X, full_matrices=False),
                що повертає (U, S, Vᵗ) зі спадними S; за замовчуванням LAPACK
                через scipy
    """
    X = np.asarray(trajectory, dtype=float)
    L, K = X.shape
    U, S, Vt = (svd or linalg.svd)(X, full_matrices=False)

    sigma_max = max(S[0], SIGMA_FLOOR) if S.size else 0.0
    tol = max(L, K) * RANK_RTOL * sigma_max
    r = int(np.count_nonzero(S > tol))
    logger.debug("SVD %dx%d: rank=%d, tol=%.3e", L, K, r, tol)

    return Decomposition(
        N=L + K - 1,
        L=L,
        K=K,
        rank=r,
        singular_values=_freeze(S[:r].copy()),
        U=_freeze(U[:, :r].copy()),
        V=_freeze(Vt[:r, :].T.copy()),
        trajectory=_freeze(X.copy()),
    )


def diagonal_average(matrix):
    """
    Діагональне усереднення (ганкелізація).

    Для кожного k у [0, N) усереднює всі елементи (a, b) з a + b = k.
    Кількість таких елементів зростає від 1 на краях до min(L, K) у середині.
    """
    M = np.asarray(matrix, dtype=float)
    L, K = M.shape
    N = L + K - 1
    targets = (np.arange(L)[:, None] + np.arange(K)[None, :]).ravel()
    sums = np.bincount(targets, weights=M.ravel(), minlength=N)
    counts = np.bincount(targets, minlength=N)
    return sums / counts


def elementary_reconstructions(decomposition):
    """
    Етап 3. Елементарні компоненти.

    Кожна трійка i дає матрицю рангу 1 σ_i · u_i ⊗ v_i, яка після
    діагонального усереднення перетворюється на ряд довжини N.
    Повертає масив форми (r, N).
    """
    d = decomposition
    components = np.zeros((d.rank, d.N))
    for i in range(d.rank):
        u, sigma, v = d.triplet(i)
        components[i] = diagonal_average(np.outer(u * sigma, v))
    return _freeze(components)


def assemble(components, keep):
    """
    Етап 4. Складання реконструкції з відібраних компонент.

    :param components: масив (r, N) елементарних компонент
    :param keep: булевий вектор довжини рівно r
    """
    components = np.asarray(components, dtype=float)
    keep = np.asarray(keep, dtype=bool)
    if components.ndim != 2:
        raise ValueError(f"Очікується масив компонент (r, N), отримано {components.shape}")
    if keep.shape != (components.shape[0],):
        raise ValueError(
            f"Вектор Keep має довжину {keep.size}, а компонент {components.shape[0]}"
        )
    return components[keep].sum(axis=0)


def baseline_top_r(decomposition, r, components=None):
    """
    Класичний SSA: залишаємо r найбільших сингулярних трійок.

    r обмежується діапазоном [0, rank]. Для порівняння з OR-SSA при тій самій
    кількості компонент.
    """
    if components is None:
        components = elementary_reconstructions(decomposition)
    r = max(0, min(int(r), decomposition.rank))
    order = np.argsort(-decomposition.singular_values, kind="stable")[:r]
    keep = np.zeros(decomposition.rank, dtype=bool)
    keep[order] = True
    return assemble(components, keep)


class SSA:
    """
    Бібліотечний клас для сингулярного спектрального аналізу (SSA),
    також відомого як метод «Гусениця» (Caterpillar).

    Обгортка над чистими функціями модуля: кожен етап обчислюється один раз
    і кешується, вхідний ряд не змінюється.

        from orssa.ssa import SSA
    """

    def __init__(self, time_series, window_length, svd=None):
        self.original_series = _freeze(np.array(time_series, dtype=float))
        self.N = len(self.original_series)

        # L – довжина вікна вкладення, K = N - L + 1 – кількість стовпців.
        self.L = window_length
        self.K = self.N - self.L + 1
        self.trajectory_matrix = None
        self.decomposition = None
        self.components = None
        self.svd = svd

    def embed(self):
        if self.trajectory_matrix is None:
            self.trajectory_matrix = embed(self.original_series, self.L)
        return self.trajectory_matrix

    def decompose(self):
        if self.decomposition is None:
            self.decomposition = decompose(self.embed(), svd=self.svd)
        return self.decomposition

    @property
    def rank(self):
        return self.decompose().rank

    def elementary_components(self):
        if self.components is None:
            self.components = elementary_reconstructions(self.decompose())
        return self.components

    def get_contributions(self):
        """Нормовані частки енергії σ_i² / Σσ² усіх r компонент."""
        return compute_contributions(self.decompose().singular_values)

    def reconstruct(self, keep=None):
        """
        Реконструкція ряду з компонент, для яких keep[i] істинне.

        Без keep використовуються всі r компонент.
        """
        components = self.elementary_components()
        if keep is None:
            keep = np.ones(components.shape[0], dtype=bool)
        return assemble(components, keep)


__all__ = [
    "Decomposition",
    "SSA",
    "assemble",
    "baseline_top_r",
    "decompose",
    "diagonal_average",
    "elementary_reconstructions",
    "embed",
]
