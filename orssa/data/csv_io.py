from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd


def load_column(file_path, column: Optional[Union[int, str]] = 0):
    """
    Читання одного числового стовпця з CSV-файлу.

    :param file_path: шлях до файлу; роздільник (',', ';' або табуляція)
                      визначається автоматично
    :param column: номер стовпця (з нуля) або назва стовпця в заголовку
    :return: одномірний numpy-масив; нечислові клітинки (зокрема заголовок)
             пропускаються
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"CSV файл не знайдено: {file_path}")

    header = 0 if isinstance(column, str) else None
    df = pd.read_csv(file_path, sep=r"[,;\t]", engine="python", header=header,
                     skip_blank_lines=True)
    if column is None:
        column = df.columns[0]
    if column not in df.columns:
        raise ValueError(f"Стовпець {column!r} відсутній у файлі {file_path}")

    values = pd.to_numeric(df[column], errors="coerce").dropna()
    if values.empty:
        raise ValueError(f"У файлі {file_path} немає числових даних у стовпці {column!r}")
    return values.to_numpy(dtype=float)


def save_array(file_path, values):
    """Збереження ряду: одне значення на рядок."""
    pd.Series(np.asarray(values, dtype=float)).to_csv(
        file_path, index=False, header=False, float_format="%.17g")


def save_matrix(file_path, matrix):
    """Збереження матриці (наприклад, w-кореляцій) без заголовка та індексу."""
    pd.DataFrame(np.asarray(matrix, dtype=float)).to_csv(
        file_path, index=False, header=False, float_format="%.17g")


__all__ = ["load_column", "save_array", "save_matrix"]
