import numpy as np

# Нижня межа зваженої норми компоненти, щоб уникнути ділення на нуль.
NORM_FLOOR = 1e-30


def compute_contributions(singular_values):
    """
    Внесок (енергія) кожної компоненти: q_i = σ_i² / Σσ².

    Сума дорівнює 1 при r > 0; для порожнього або нульового спектра
    повертаються нулі.
    """
    s = np.asarray(singular_values, dtype=float)
    energy = s ** 2
    total = energy.sum()
    if total <= 0:
        return np.zeros_like(energy)
    return energy / total


def compute_1d_weights(N, L, K):
    """
    Трикутний профіль ваг w_k – кількість клітинок траєкторної матриці,
    що відповідають моменту часу k.

    При L <= K: w_k = k + 1 для k <= L - 2, w_k = L у середині, w_k = N - k
    для k >= K. При L > K роль L і K міняється, тому беремо мінімум.
    """
    if N != L + K - 1:
        raise ValueError(f"Очікується N = L + K - 1, отримано N={N}, L={L}, K={K}")
    k = np.arange(N)
    return np.minimum.reduce([k + 1, np.full(N, L), np.full(N, K), N - k]).astype(float)


def weighted_correlation(components, weights):
    """
    Матриця w-кореляцій між елементарними компонентами.

    ρ_ij = <x_i, x_j>_w / (||x_i||_w · ||x_j||_w), де <a, b>_w = Σ_k w_k a_k b_k.
    Норми обмежені знизу NORM_FLOOR, тож вироджена (нульова) компонента
    має кореляцію 0 з усіма іншими. Діагональ дорівнює 1.
    """
    X = np.asarray(components, dtype=float)
    w = np.asarray(weights, dtype=float)
    r = X.shape[0]
    if r == 0:
        return np.zeros((0, 0))
    if X.shape[1] != w.shape[0]:
        raise ValueError(f"Довжина ваг {w.shape[0]} не збігається з довжиною компонент {X.shape[1]}")

    gram = (X * w) @ X.T
    norms = np.sqrt(np.maximum(np.diag(gram), NORM_FLOOR))
    R = gram / np.outer(norms, norms)
    R = np.clip((R + R.T) / 2.0, -1.0, 1.0)
    np.fill_diagonal(R, 1.0)
    return R


def mse(a, b):
    """Середньоквадратична похибка між двома рядами однакової довжини."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Ряди різної довжини: {a.shape} та {b.shape}")
    return float(np.mean((a - b) ** 2))


__all__ = [
    "compute_1d_weights",
    "compute_contributions",
    "mse",
    "weighted_correlation",
]
