from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.charts import spend_bar_chart, to_vega_spec
from core.data import to_records
from core.filters import DashboardFilters
from core.formatting import format_currency, format_percent
from core.joins import UnknownEntityError, join_dealers
from core.metrics_invoices import invoice_spend
from core.metrics_rebates import rebate_period_series
from core.summary import percent_column, safe_percent, top_n

VENDOR_METRIC_COLUMNS = [
    "vendor_id",
    "vendor_name",
    "category",
    "base_rebate_rate",
    "total_spend",
    "total_rebate",
    "effective_rebate_percent",
    "dealer_count",
]


def build_vendor_metrics(
    vendors: pd.DataFrame,
    invoices: pd.DataFrame,
    line_items: pd.DataFrame,
    rebate_earnings: pd.DataFrame,
) -> pd.DataFrame:
    """One row per vendor in the master list, highest spend first."""
    activity = invoice_spend(invoices, line_items)
    spend = activity.groupby("vendor_id", sort=False)["total_amount"].sum()
    dealer_counts = activity.groupby("vendor_id", sort=False)["dealer_id"].nunique()
    rebate = rebate_earnings.groupby("vendor_id", sort=False)["rebate_amount"].sum()

    rows = vendors.rename(columns={"id": "vendor_id", "name": "vendor_name"})
    rows["total_spend"] = rows["vendor_id"].map(spend).fillna(0.0).astype(float)
    rows["total_rebate"] = rows["vendor_id"].map(rebate).fillna(0.0).astype(float)
    rows["effective_rebate_percent"] = percent_column(rows["total_rebate"], rows["total_spend"])
    rows["dealer_count"] = rows["vendor_id"].map(dealer_counts).fillna(0).astype(int)
    rows = rows.sort_values("total_spend", ascending=False, kind="mergesort")
    return rows[VENDOR_METRIC_COLUMNS].reset_index(drop=True)


def vendor_summary(rows: pd.DataFrame) -> Dict[str, Any]:
    return {
        "total_vendors": int(len(rows)),
        "combined_spend": float(rows["total_spend"].sum()) if not rows.empty else 0.0,
        "combined_rebate": float(rows["total_rebate"].sum()) if not rows.empty else 0.0,
    }


def _product_sales(line_items: pd.DataFrame, vendor_products: pd.DataFrame) -> pd.DataFrame:
    lines = line_items[line_items["product_id"].isin(set(vendor_products["id"]))]
    sales = (
        lines.groupby("product_id", sort=False)
        .agg(quantity=("quantity", "sum"), revenue=("line_total", "sum"))
        .reset_index()
    )
    catalog = vendor_products.rename(columns={"id": "product_id", "name": "product_name"})
    out = catalog.merge(sales, on="product_id", how="left")
    out["quantity"] = out["quantity"].fillna(0.0).astype(float)
    out["revenue"] = out["revenue"].fillna(0.0).astype(float)
    return out


def build_vendor_detail(vendor_id: str, ctx: Dict[str, Any], *, top_limit: int = 5, recent_limit: int = 5) -> Dict[str, Any]:
    vendors: pd.DataFrame = ctx["vendors"]
    match = vendors[vendors["id"] == vendor_id]
    if match.empty:
        raise UnknownEntityError("vendor", vendor_id)
    vendor = to_records(match.head(1))[0]

    invoices = invoice_spend(ctx["invoices"], ctx["line_items"])
    invoices = invoices[invoices["vendor_id"] == vendor_id]
    earnings: pd.DataFrame = ctx["rebate_earnings"]
    earnings = earnings[earnings["vendor_id"] == vendor_id]
    products: pd.DataFrame = ctx["products"]
    vendor_products = products[products["vendor_id"] == vendor_id]

    total_spend = float(invoices["total_amount"].sum()) if not invoices.empty else 0.0
    total_rebate = float(earnings["rebate_amount"].sum()) if not earnings.empty else 0.0
    effective = safe_percent(total_rebate, total_spend)

    # Dealers missing from the master list are left out of the ranking.
    dealers: pd.DataFrame = ctx["dealers"]
    by_dealer = invoices.groupby("dealer_id", sort=False)["total_amount"].sum().reset_index(name="spend")
    by_dealer = by_dealer[by_dealer["dealer_id"].isin(set(dealers["id"]))]
    by_dealer = join_dealers(by_dealer, dealers)
    top_dealers = top_n(by_dealer, top_limit, "spend")

    line_items: pd.DataFrame = ctx["line_items"]
    vendor_lines = line_items[line_items["invoice_id"].isin(set(invoices["id"]))]
    catalog = _product_sales(vendor_lines, vendor_products)
    sold = catalog[catalog["revenue"] > 0]
    top_products = top_n(sold, top_limit, "revenue")

    recent = invoices.sort_values("date", ascending=False, kind="mergesort").head(recent_limit)
    recent = join_dealers(recent, dealers)[["id", "invoice_number", "date", "dealer_id", "dealer_name", "total_amount", "line_count"]]

    charts: Dict[str, Any] = {}
    if not top_dealers.empty:
        charts["top_dealers"] = to_vega_spec(spend_bar_chart(top_dealers, label_col="dealer_name", value_col="spend", title="Spend"))

    product_cols = ["product_id", "sku", "product_name", "category", "unit_cost", "quantity", "revenue"]
    return {
        "vendor": vendor,
        "kpis": {
            "total_spend": total_spend,
            "total_rebate": total_rebate,
            "effective_rebate_percent": effective,
            "dealers_served": int(invoices["dealer_id"].nunique()) if not invoices.empty else 0,
            "invoice_count": int(len(invoices)),
            "product_count": int(len(vendor_products)),
        },
        "formatted": {
            "total_spend": format_currency(total_spend),
            "total_rebate": format_currency(total_rebate),
            "effective_rebate_percent": format_percent(effective),
            "base_rebate_rate": format_percent(vendor.get("base_rebate_rate")),
        },
        "top_dealers": to_records(top_dealers[["dealer_id", "dealer_name", "dealer_region", "spend"]]),
        "top_products": to_records(top_products[product_cols]),
        "products": to_records(catalog[product_cols]),
        "recent_invoices": to_records(recent),
        "period_rebates": to_records(rebate_period_series(earnings)),
        "charts": charts,
    }


def compute_vendors(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows = build_vendor_metrics(ctx["vendors"], ctx["invoices"], ctx["line_items"], ctx["rebate_earnings"])
    summary = vendor_summary(rows)

    charts: Dict[str, Any] = {}
    top = top_n(rows, filters.top_n, "total_spend")
    if not top.empty:
        charts["top_vendors"] = to_vega_spec(spend_bar_chart(top, label_col="vendor_name", value_col="total_spend", title="Total Spend"))

    return {
        "filters": asdict(filters),
        "summary": summary,
        "kpis": {
            "total_vendors": str(summary["total_vendors"]),
            "combined_spend": format_currency(summary["combined_spend"]),
            "combined_rebate": format_currency(summary["combined_rebate"]),
        },
        "rows": to_records(rows),
        "charts": charts,
    }
