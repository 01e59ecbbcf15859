from __future__ import annotations

from typing import Any, Callable, Dict, List, Sequence, Union

import pandas as pd

RowKey = Union[str, Callable[[Dict[str, Any]], float]]


def safe_percent(part: object, whole: object) -> float:
    """part / whole * 100, or 0.0 when whole is not positive."""
    whole_f = float(whole or 0)
    if pd.isna(whole_f) or whole_f <= 0:
        return 0.0
    part_f = float(part or 0)
    return part_f / whole_f * 100


def percent_column(part: pd.Series, whole: pd.Series) -> pd.Series:
    """Vectorized safe_percent; rows with a non-positive whole get 0.0."""
    positive = whole.where(whole > 0)
    return (part / positive * 100).fillna(0.0).astype(float)


def top_n(rows: Union[pd.DataFrame, Sequence[Dict[str, Any]]], n: int, key: RowKey) -> Union[pd.DataFrame, List[Dict[str, Any]]]:
    """First n rows by key, descending. Ties keep their original order.

    Frames are ranked by a column name; record lists by a field name or a
    callable.
    """
    n = max(0, int(n))
    if isinstance(rows, pd.DataFrame):
        if callable(key):
            raise TypeError("top_n on a DataFrame takes a column name")
        return rows.sort_values(key, ascending=False, kind="mergesort").head(n).reset_index(drop=True)
    key_fn = key if callable(key) else (lambda row: row[key])
    return sorted(rows, key=key_fn, reverse=True)[:n]
