from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import rebate_period_chart, to_vega_spec
from core.data import to_records
from core.filters import DashboardFilters
from core.formatting import format_currency, format_percent
from core.joins import join_dealers, join_vendors
from core.summary import percent_column, safe_percent

DEALER_REBATE_COLUMNS = ["dealer_id", "dealer_name", "region", "total_spend", "total_rebate", "effective_rebate_percent"]
VENDOR_REBATE_COLUMNS = ["vendor_id", "vendor_name", "primary_category", "total_spend", "total_rebate", "effective_rebate_percent"]
PERIOD_REBATE_COLUMNS = ["period", "total_spend", "total_rebate", "effective_rebate_percent", "dealer_count", "vendor_count"]
PERIOD_SERIES_COLUMNS = ["period", "total_spend", "total_rebate"]


def _sum_by(earnings: pd.DataFrame, key: str) -> pd.DataFrame:
    grouped = (
        earnings.groupby(key, sort=False)
        .agg(total_spend=("spend", "sum"), total_rebate=("rebate_amount", "sum"))
        .reset_index()
    )
    grouped["effective_rebate_percent"] = percent_column(grouped["total_rebate"], grouped["total_spend"])
    return grouped


def rebates_by_dealer(earnings: pd.DataFrame, dealers: pd.DataFrame) -> pd.DataFrame:
    """Spend and rebate per dealer, highest rebate first."""
    if earnings.empty:
        return pd.DataFrame(columns=DEALER_REBATE_COLUMNS)
    rows = join_dealers(_sum_by(earnings, "dealer_id"), dealers).rename(columns={"dealer_region": "region"})
    rows = rows.sort_values("total_rebate", ascending=False, kind="mergesort")
    return rows[DEALER_REBATE_COLUMNS].reset_index(drop=True)


def rebates_by_vendor(earnings: pd.DataFrame, vendors: pd.DataFrame) -> pd.DataFrame:
    """Spend and rebate per vendor, highest rebate first."""
    if earnings.empty:
        return pd.DataFrame(columns=VENDOR_REBATE_COLUMNS)
    rows = join_vendors(_sum_by(earnings, "vendor_id"), vendors).rename(columns={"vendor_category": "primary_category"})
    rows = rows.sort_values("total_rebate", ascending=False, kind="mergesort")
    return rows[VENDOR_REBATE_COLUMNS].reset_index(drop=True)


def rebates_by_period(earnings: pd.DataFrame) -> pd.DataFrame:
    """Per-period totals with distinct dealer/vendor counts.

    Periods sort as plain strings, which is chronological only for
    "YYYY-Qn" labels.
    """
    if earnings.empty:
        return pd.DataFrame(columns=PERIOD_REBATE_COLUMNS)
    rows = (
        earnings.groupby("period", sort=False)
        .agg(
            total_spend=("spend", "sum"),
            total_rebate=("rebate_amount", "sum"),
            dealer_count=("dealer_id", "nunique"),
            vendor_count=("vendor_id", "nunique"),
        )
        .reset_index()
    )
    rows["effective_rebate_percent"] = percent_column(rows["total_rebate"], rows["total_spend"])
    rows = rows.sort_values("period", kind="mergesort")
    return rows[PERIOD_REBATE_COLUMNS].reset_index(drop=True)


def rebate_period_series(earnings: pd.DataFrame) -> pd.DataFrame:
    """(period, total_spend, total_rebate) points for charting, ascending by period."""
    if earnings.empty:
        return pd.DataFrame(columns=PERIOD_SERIES_COLUMNS)
    rows = _sum_by(earnings, "period").sort_values("period", kind="mergesort")
    return rows[PERIOD_SERIES_COLUMNS].reset_index(drop=True)


def total_rebate(earnings: pd.DataFrame) -> float:
    return float(earnings["rebate_amount"].sum()) if not earnings.empty else 0.0


def global_rebate_summary(earnings: pd.DataFrame) -> Dict[str, Any]:
    spend = float(earnings["spend"].sum()) if not earnings.empty else 0.0
    rebate = total_rebate(earnings)
    return {
        "total_spend": spend,
        "total_rebate": rebate,
        "effective_rebate_percent": safe_percent(rebate, spend),
        "period_count": int(earnings["period"].nunique()) if not earnings.empty else 0,
    }


def weighted_average_rebate_percent(earnings: pd.DataFrame) -> float:
    """Spend-weighted mean of rebate_percent_applied; 0 when there is no spend.

    Not the same figure as the effective rebate percent (rebate / spend).
    """
    if earnings.empty:
        return 0.0
    spend = float(earnings["spend"].sum())
    if spend == 0:
        return 0.0
    weighted = float((earnings["rebate_percent_applied"] * earnings["spend"]).sum())
    return weighted / spend


def compute_rebates(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    earnings: pd.DataFrame = ctx["rebate_earnings"]
    summary = global_rebate_summary(earnings)
    series = rebate_period_series(earnings)

    charts: Dict[str, Any] = {}
    if not series.empty:
        charts["rebates_by_period"] = to_vega_spec(rebate_period_chart(series))

    return {
        "filters": asdict(filters),
        "summary": summary,
        "kpis": {
            "total_spend": format_currency(summary["total_spend"]),
            "total_rebate": format_currency(summary["total_rebate"]),
            "effective_rebate_percent": format_percent(summary["effective_rebate_percent"]),
            "period_count": str(summary["period_count"]),
        },
        "by_dealer": to_records(rebates_by_dealer(earnings, ctx["dealers"])),
        "by_vendor": to_records(rebates_by_vendor(earnings, ctx["vendors"])),
        "by_period": to_records(rebates_by_period(earnings)),
        "series": to_records(series),
        "charts": charts,
    }
