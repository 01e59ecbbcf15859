from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import spend_bar_chart, to_vega_spec
from core.data import to_records
from core.filters import DashboardFilters
from core.formatting import format_currency, format_percent
from core.joins import UnknownEntityError, join_vendors
from core.metrics_invoices import invoice_spend
from core.metrics_rebates import rebate_period_series
from core.summary import percent_column, safe_percent, top_n

DEALER_METRIC_COLUMNS = [
    "dealer_id",
    "dealer_name",
    "region",
    "annual_spend",
    "total_spend",
    "total_rebate",
    "effective_rebate_percent",
    "vendor_count",
]


def build_dealer_metrics(
    dealers: pd.DataFrame,
    invoices: pd.DataFrame,
    line_items: pd.DataFrame,
    rebate_earnings: pd.DataFrame,
) -> pd.DataFrame:
    """One row per dealer in the master list, highest spend first.

    Dealers without invoices or earnings still appear with zero totals. Equal
    spend keeps master-list order.
    """
    activity = invoice_spend(invoices, line_items)
    spend = activity.groupby("dealer_id", sort=False)["total_amount"].sum()
    vendor_counts = activity.groupby("dealer_id", sort=False)["vendor_id"].nunique()
    rebate = rebate_earnings.groupby("dealer_id", sort=False)["rebate_amount"].sum()

    rows = dealers.rename(columns={"id": "dealer_id", "name": "dealer_name"})
    rows["total_spend"] = rows["dealer_id"].map(spend).fillna(0.0).astype(float)
    rows["total_rebate"] = rows["dealer_id"].map(rebate).fillna(0.0).astype(float)
    rows["effective_rebate_percent"] = percent_column(rows["total_rebate"], rows["total_spend"])
    rows["vendor_count"] = rows["dealer_id"].map(vendor_counts).fillna(0).astype(int)
    rows = rows.sort_values("total_spend", ascending=False, kind="mergesort")
    return rows[DEALER_METRIC_COLUMNS].reset_index(drop=True)


def dealer_summary(rows: pd.DataFrame) -> Dict[str, Any]:
    return {
        "total_dealers": int(len(rows)),
        "combined_spend": float(rows["total_spend"].sum()) if not rows.empty else 0.0,
        "combined_rebate": float(rows["total_rebate"].sum()) if not rows.empty else 0.0,
    }


def build_dealer_detail(dealer_id: str, ctx: Dict[str, Any], *, top_limit: int = 5, recent_limit: int = 5) -> Dict[str, Any]:
    dealers: pd.DataFrame = ctx["dealers"]
    match = dealers[dealers["id"] == dealer_id]
    if match.empty:
        raise UnknownEntityError("dealer", dealer_id)
    dealer = to_records(match.head(1))[0]

    invoices = invoice_spend(ctx["invoices"], ctx["line_items"])
    invoices = invoices[invoices["dealer_id"] == dealer_id]
    earnings: pd.DataFrame = ctx["rebate_earnings"]
    earnings = earnings[earnings["dealer_id"] == dealer_id]

    total_spend = float(invoices["total_amount"].sum()) if not invoices.empty else 0.0
    total_rebate = float(earnings["rebate_amount"].sum()) if not earnings.empty else 0.0
    effective = safe_percent(total_rebate, total_spend)

    # Vendors missing from the master list are left out of the ranking.
    vendors: pd.DataFrame = ctx["vendors"]
    by_vendor = invoices.groupby("vendor_id", sort=False)["total_amount"].sum().reset_index(name="spend")
    by_vendor = by_vendor[by_vendor["vendor_id"].isin(set(vendors["id"]))]
    by_vendor = join_vendors(by_vendor, vendors)
    top_vendors = top_n(by_vendor, top_limit, "spend")

    products: pd.DataFrame = ctx["products"]
    line_items: pd.DataFrame = ctx["line_items"]
    lines = line_items[line_items["invoice_id"].isin(set(invoices["id"]))]
    product_categories = (
        products[["id", "category"]]
        .dropna(subset=["id"])
        .drop_duplicates(subset=["id"])
        .rename(columns={"id": "product_id"})
    )
    lines = lines.merge(product_categories, on="product_id", how="inner")
    categories = lines.groupby("category", sort=False)["line_total"].sum().reset_index(name="spend")
    categories["percentage"] = percent_column(categories["spend"], pd.Series(total_spend, index=categories.index))
    categories = categories.sort_values("spend", ascending=False, kind="mergesort").reset_index(drop=True)

    recent = invoices.sort_values("date", ascending=False, kind="mergesort").head(recent_limit)
    recent = join_vendors(recent, vendors)[["id", "invoice_number", "date", "vendor_id", "vendor_name", "total_amount", "line_count"]]

    charts: Dict[str, Any] = {}
    if not top_vendors.empty:
        charts["top_vendors"] = to_vega_spec(spend_bar_chart(top_vendors, label_col="vendor_name", value_col="spend", title="Spend"))

    return {
        "dealer": dealer,
        "kpis": {
            "total_spend": total_spend,
            "total_rebate": total_rebate,
            "effective_rebate_percent": effective,
            "invoice_count": int(len(invoices)),
        },
        "formatted": {
            "total_spend": format_currency(total_spend),
            "total_rebate": format_currency(total_rebate),
            "effective_rebate_percent": format_percent(effective),
            "annual_spend": format_currency(dealer.get("annual_spend")),
        },
        "top_vendors": to_records(top_vendors[["vendor_id", "vendor_name", "vendor_category", "spend"]]),
        "categories": to_records(categories),
        "recent_invoices": to_records(recent),
        "period_rebates": to_records(rebate_period_series(earnings)),
        "charts": charts,
    }


def compute_dealers(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows = build_dealer_metrics(ctx["dealers"], ctx["invoices"], ctx["line_items"], ctx["rebate_earnings"])
    summary = dealer_summary(rows)

    charts: Dict[str, Any] = {}
    top = top_n(rows, filters.top_n, "total_spend")
    if not top.empty:
        charts["top_dealers"] = to_vega_spec(spend_bar_chart(top, label_col="dealer_name", value_col="total_spend", title="Total Spend"))

    return {
        "filters": asdict(filters),
        "summary": summary,
        "kpis": {
            "total_dealers": str(summary["total_dealers"]),
            "combined_spend": format_currency(summary["combined_spend"]),
            "combined_rebate": format_currency(summary["combined_rebate"]),
        },
        "rows": to_records(rows),
        "charts": charts,
    }
