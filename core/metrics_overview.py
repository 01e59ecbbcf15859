from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import rebate_period_chart, to_vega_spec
from core.data import to_records
from core.filters import DashboardFilters
from core.formatting import format_currency, format_percent
from core.joins import join_dealers, join_vendors
from core.metrics_invoices import invoice_spend
from core.metrics_rebates import rebate_period_series, total_rebate, weighted_average_rebate_percent
from core.summary import top_n

UNKNOWN = "Unknown"


def total_dealers(dealers: pd.DataFrame) -> int:
    return int(len(dealers))


def total_vendors(vendors: pd.DataFrame) -> int:
    return int(len(vendors))


def total_spend(line_items: pd.DataFrame) -> float:
    """Sum of every invoice line, i.e. total spend across all invoices."""
    return float(line_items["line_total"].sum()) if not line_items.empty else 0.0


def top_dealers_by_spend(dealers: pd.DataFrame, invoices: pd.DataFrame, line_items: pd.DataFrame, limit: int = 5) -> pd.DataFrame:
    """Dealers with invoices, ranked by spend. Unmatched ids show as 'Unknown'."""
    activity = invoice_spend(invoices, line_items)
    spend = activity.groupby("dealer_id", sort=False)["total_amount"].sum().reset_index(name="total_spend")
    rows = join_dealers(spend, dealers, fallback=UNKNOWN).rename(columns={"dealer_region": "region"})
    rows["region"] = rows["region"].fillna(UNKNOWN)
    return top_n(rows[["dealer_id", "dealer_name", "region", "total_spend"]], limit, "total_spend")


def top_vendors_by_rebate(vendors: pd.DataFrame, rebate_earnings: pd.DataFrame, limit: int = 5) -> pd.DataFrame:
    """Vendors with earnings, ranked by rebate. Unmatched ids show as 'Unknown'."""
    rebate = rebate_earnings.groupby("vendor_id", sort=False)["rebate_amount"].sum().reset_index(name="total_rebate")
    rows = join_vendors(rebate, vendors, fallback=UNKNOWN).rename(columns={"vendor_category": "category"})
    rows["category"] = rows["category"].fillna(UNKNOWN)
    return top_n(rows[["vendor_id", "vendor_name", "category", "total_rebate"]], limit, "total_rebate")


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    dealers: pd.DataFrame = ctx["dealers"]
    vendors: pd.DataFrame = ctx["vendors"]
    invoices: pd.DataFrame = ctx["invoices"]
    line_items: pd.DataFrame = ctx["line_items"]
    earnings: pd.DataFrame = ctx["rebate_earnings"]

    kpis = {
        "total_dealers": total_dealers(dealers),
        "total_vendors": total_vendors(vendors),
        "total_spend": total_spend(line_items),
        "total_rebate": total_rebate(earnings),
        "average_rebate_percent": weighted_average_rebate_percent(earnings),
    }

    series = rebate_period_series(earnings)
    charts: Dict[str, Any] = {}
    if not series.empty:
        charts["rebates_over_time"] = to_vega_spec(rebate_period_chart(series))

    return {
        "filters": asdict(filters),
        "kpis": kpis,
        "formatted": {
            "total_dealers": str(kpis["total_dealers"]),
            "total_vendors": str(kpis["total_vendors"]),
            "total_spend": format_currency(kpis["total_spend"]),
            "total_rebate": format_currency(kpis["total_rebate"]),
            "average_rebate_percent": format_percent(kpis["average_rebate_percent"]),
        },
        "top_dealers": to_records(top_dealers_by_spend(dealers, invoices, line_items, filters.top_n)),
        "top_vendors": to_records(top_vendors_by_rebate(vendors, earnings, filters.top_n)),
        "series": to_records(series),
        "charts": charts,
    }
