from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

ALL_PERIODS = "All Periods"
ALL_REGIONS = "All Regions"
ALL_CATEGORIES = "All Categories"

DEFAULT_TOP_N = 5
DEFAULT_RECENT_LIMIT = 5


@dataclass(frozen=True)
class DashboardFilters:
    selected_periods: List[str] = field(default_factory=list)
    selected_regions: List[str] = field(default_factory=list)
    selected_categories: List[str] = field(default_factory=list)
    top_n: int = DEFAULT_TOP_N
    recent_limit: int = DEFAULT_RECENT_LIMIT


def _as_str_list(values: Optional[Iterable[object]], *, drop: str) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if not s or s == drop or s in out:
            continue
        out.append(s)
    return out


def _clamped_int(value: object, default: int, low: int, high: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        out = default
    return max(low, min(high, out))


def normalize_filters(raw: dict, *, available_periods: Optional[List[str]] = None) -> DashboardFilters:
    raw = raw or {}

    selected_periods = _as_str_list(raw.get("selected_periods"), drop=ALL_PERIODS)
    if available_periods is not None:
        known = set(available_periods)
        selected_periods = [p for p in selected_periods if p in known]
    selected_periods = sorted(selected_periods)

    return DashboardFilters(
        selected_periods=selected_periods,
        selected_regions=_as_str_list(raw.get("selected_regions"), drop=ALL_REGIONS),
        selected_categories=_as_str_list(raw.get("selected_categories"), drop=ALL_CATEGORIES),
        top_n=_clamped_int(raw.get("top_n", DEFAULT_TOP_N), DEFAULT_TOP_N, 1, 200),
        recent_limit=_clamped_int(raw.get("recent_limit", DEFAULT_RECENT_LIMIT), DEFAULT_RECENT_LIMIT, 1, 50),
    )
