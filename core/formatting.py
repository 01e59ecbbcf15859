from __future__ import annotations

from typing import Iterable

import pandas as pd


def format_currency(amount: object) -> str:
    """Compact currency label: $1.5M, $2.5K, $42.00."""
    if amount is None or pd.isna(amount):
        return "N/A"
    value = float(amount)
    if value >= 1_000_000:
        return f"${value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"${value / 1_000:.1f}K"
    return f"${value:.2f}"


def format_percent(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{float(value):.2f}%"


def format_date(value: object) -> str:
    """ISO date -> 'Jan 5, 2025'. Strings that do not parse come back unchanged."""
    if value is None or pd.isna(value):
        return ""
    try:
        ts = pd.Timestamp(str(value))
    except (TypeError, ValueError):
        return str(value)
    if pd.isna(ts):
        return str(value)
    return f"{ts:%b} {ts.day}, {ts.year}"


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_currency(v) if pd.notna(v) else "")
    return formatted


def format_percent_columns(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: format_percent(v) if pd.notna(v) else "")
    return formatted
