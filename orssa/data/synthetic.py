"""
Штучні часові ряди для демонстрації та тестування OR-SSA.

Усі генератори приймають явний seed і використовують власний
numpy.random.Generator, тож не залежать від глобального стану.
"""
import numpy as np


def generate_sample_data(n_points=200, seed=42):
    """
    Тестовий ряд «погода»: тренд + дві сезонні хвилі + гаусів шум.

    :return: (ряд, тренд, сезонність 1, сезонність 2, шум)
    """
    rng = np.random.default_rng(seed)
    t = np.arange(n_points)
    trend = 0.05 * t + 10
    seasonal1 = 5 * np.sin(2 * np.pi * t / 12)
    seasonal2 = 2 * np.sin(2 * np.pi * t / 4)
    noise = rng.normal(0, 1, n_points)
    time_series = trend + seasonal1 + seasonal2 + noise
    return time_series, trend, seasonal1, seasonal2, noise


def sine_with_trend(n_points=200, seed=None):
    """Лінійний тренд + синус періоду 20 + рівномірний шум U[0, 0.5)."""
    rng = np.random.default_rng(seed)
    t = np.arange(n_points)
    return 0.05 * t + 3.0 * np.sin(2 * np.pi * t / 20.0) + rng.random(n_points) * 0.5


def experimental_series(n_points=200, seed=None):
    """
    «Експериментальний» ряд: злам тренду в t = 100, дві хвилі,
    гетероскедастичний шум та ~3% викидів.
    """
    rng = np.random.default_rng(seed)
    t = np.arange(n_points, dtype=float)
    trend = np.where(t < 100, 0.02 * t, 0.02 * 100 + 0.05 * (t - 100))
    wave = 2.0 * np.sin(2 * np.pi * t / 40.0) + 0.8 * np.cos(2 * np.pi * t / 10.0)
    noise = np.where(t < 100, 0.3, 1.0) * (rng.random(n_points) - 0.5)
    outlier = np.where(rng.random(n_points) < 0.03, rng.random(n_points) * 10.0 - 5.0, 0.0)
    return trend + wave + noise + outlier


def clean_series(n_points=200, scale=1.0):
    """Повільний тренд + дві хвилі з повільною амплітудною модуляцією (без шуму)."""
    t = np.arange(n_points, dtype=float)
    trend = 0.003 * t
    wave1 = np.sin(2 * np.pi * t / 40.0)
    wave2 = 0.5 * np.cos(2 * np.pi * t / 11.0 + 0.4)
    mod = 0.2 * np.sin(2 * np.pi * t / 180.0)
    return scale * ((1.0 + mod) * (2.0 * wave1 + wave2) + trend)


def add_noise(clean, sigma, seed=None):
    """Додає рівномірний шум U(-sigma, sigma) до копії ряду."""
    rng = np.random.default_rng(seed)
    clean = np.asarray(clean, dtype=float)
    return clean + sigma * (rng.random(clean.shape[0]) - 0.5) * 2.0


__all__ = [
    "add_noise",
    "clean_series",
    "experimental_series",
    "generate_sample_data",
    "sine_with_trend",
]
