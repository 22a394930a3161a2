from .csv_io import load_column, save_array, save_matrix
from .synthetic import (
    add_noise,
    clean_series,
    experimental_series,
    generate_sample_data,
    sine_with_trend,
)

__all__ = [
    "add_noise",
    "clean_series",
    "experimental_series",
    "generate_sample_data",
    "load_column",
    "save_array",
    "save_matrix",
    "sine_with_trend",
]
