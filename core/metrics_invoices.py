from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from core.data import to_records
from core.filters import DashboardFilters
from core.formatting import format_currency, format_date, format_percent
from core.joins import (
    UNKNOWN_DEALER,
    UNKNOWN_VENDOR,
    UnknownEntityError,
    join_dealers,
    join_products,
    join_vendors,
    lookup_table,
    resolve_name,
)

INVOICE_LIST_COLUMNS = [
    "id",
    "invoice_number",
    "date",
    "period",
    "dealer_id",
    "dealer_name",
    "dealer_region",
    "vendor_id",
    "vendor_name",
    "total_amount",
    "line_count",
]

REBATE_HISTORY_COLUMNS = ["period", "spend", "rebate_amount", "rebate_percent_applied"]


def invoice_total(invoice: Mapping[str, Any]) -> float:
    """Sum of quantity * unitPrice over a raw invoice record's line items."""
    total = 0.0
    for item in invoice.get("lineItems") or []:
        total += float(item.get("quantity") or 0) * float(item.get("unitPrice") or 0)
    return total


def invoice_totals(line_items: pd.DataFrame) -> pd.Series:
    """Per-invoice totals indexed by invoice_id."""
    if line_items.empty:
        return pd.Series(dtype=float, name="total_amount")
    return line_items.groupby("invoice_id", sort=False)["line_total"].sum().rename("total_amount")


def invoice_spend(invoices: pd.DataFrame, line_items: pd.DataFrame) -> pd.DataFrame:
    """Invoices with total_amount and line_count attached (0 for invoices without lines)."""
    out = invoices.copy()
    counts = line_items.groupby("invoice_id", sort=False).size() if not line_items.empty else pd.Series(dtype=int)
    out["total_amount"] = out["id"].map(invoice_totals(line_items)).fillna(0.0).astype(float)
    out["line_count"] = out["id"].map(counts).fillna(0).astype(int)
    return out


def build_invoice_list(
    invoices: pd.DataFrame,
    line_items: pd.DataFrame,
    dealers: pd.DataFrame,
    vendors: pd.DataFrame,
) -> pd.DataFrame:
    """One enriched row per invoice, newest first, then by invoice number."""
    if invoices.empty:
        return pd.DataFrame(columns=INVOICE_LIST_COLUMNS)
    rows = invoice_spend(invoices, line_items)
    rows = join_dealers(rows, dealers)
    rows = join_vendors(rows, vendors)
    rows = rows.sort_values(["date", "invoice_number"], ascending=[False, True], kind="mergesort")
    return rows[INVOICE_LIST_COLUMNS].reset_index(drop=True)


def invoice_summary(invoice_list: pd.DataFrame) -> Dict[str, Any]:
    count = int(len(invoice_list))
    total_spend = float(invoice_list["total_amount"].sum()) if count else 0.0
    return {
        "total_invoices": count,
        "total_spend": total_spend,
        "average_invoice_value": total_spend / count if count else 0.0,
        "distinct_dealers": int(invoice_list["dealer_id"].nunique()) if count else 0,
        "distinct_vendors": int(invoice_list["vendor_id"].nunique()) if count else 0,
    }


def _rebate_history(earnings: pd.DataFrame, dealer_id: str, vendor_id: str, year: str) -> pd.DataFrame:
    """Earnings for the invoice's dealer/vendor pair whose period mentions the invoice year, by period."""
    if earnings.empty or not year:
        return pd.DataFrame(columns=REBATE_HISTORY_COLUMNS)
    relevant = earnings[
        (earnings["dealer_id"] == dealer_id)
        & (earnings["vendor_id"] == vendor_id)
        & earnings["period"].astype(str).str.contains(year, regex=False, na=False)
    ]
    return relevant.sort_values("period", kind="mergesort")[REBATE_HISTORY_COLUMNS].reset_index(drop=True)


def _period_rebate_percent(history: pd.DataFrame, base_rate: Optional[float]) -> float:
    if not history.empty:
        return float(history["rebate_percent_applied"].mean())
    return float(base_rate) if base_rate is not None and pd.notna(base_rate) else 0.0


def build_invoice_detail(invoice_id: str, ctx: Dict[str, Any]) -> Dict[str, Any]:
    invoices: pd.DataFrame = ctx["invoices"]
    match = invoices[invoices["id"] == invoice_id]
    if match.empty:
        raise UnknownEntityError("invoice", invoice_id)
    invoice = to_records(match.head(1))[0]

    dealer_table = lookup_table(ctx["dealers"])
    vendor_table = lookup_table(ctx["vendors"])
    dealer = dealer_table.get(invoice["dealer_id"])
    vendor = vendor_table.get(invoice["vendor_id"])

    line_items: pd.DataFrame = ctx["line_items"]
    lines = line_items[line_items["invoice_id"] == invoice_id].sort_values("line_no", kind="mergesort")
    lines = join_products(lines, ctx["products"])
    subtotal = float(lines["line_total"].sum()) if not lines.empty else 0.0

    base_rate = vendor.get("base_rebate_rate") if vendor else None
    estimated_rebate = subtotal * float(base_rate) / 100 if base_rate is not None and pd.notna(base_rate) else 0.0
    year = str(invoice.get("date") or "")[:4]
    history = _rebate_history(ctx["rebate_earnings"], invoice["dealer_id"], invoice["vendor_id"], year)
    period_rate = _period_rebate_percent(history, base_rate)
    period_rebate = subtotal * period_rate / 100
    net_cost = subtotal - period_rebate

    line_cols = ["line_no", "product_id", "product_name", "sku", "product_category", "quantity", "unit_price", "line_total"]
    return {
        "invoice": {
            "id": invoice["id"],
            "invoice_number": invoice["invoice_number"],
            "date": invoice["date"],
            "date_display": format_date(invoice["date"]),
            "period": invoice["period"],
        },
        "dealer": {
            "id": invoice["dealer_id"],
            "name": resolve_name(dealer_table, invoice["dealer_id"], UNKNOWN_DEALER),
            "region": dealer.get("region") if dealer else None,
            "annual_spend": dealer.get("annual_spend") if dealer else None,
        },
        "vendor": {
            "id": invoice["vendor_id"],
            "name": resolve_name(vendor_table, invoice["vendor_id"], UNKNOWN_VENDOR),
            "category": vendor.get("category") if vendor else None,
            "base_rebate_rate": base_rate,
        },
        "line_items": to_records(lines[line_cols]),
        "subtotal": subtotal,
        "estimated_rebate": estimated_rebate,
        "period_rebate_percent": period_rate,
        "period_rebate_amount": period_rebate,
        "net_cost": net_cost,
        "rebate_history": to_records(history),
        "formatted": {
            "subtotal": format_currency(subtotal),
            "estimated_rebate": format_currency(estimated_rebate),
            "period_rebate_percent": format_percent(period_rate),
            "period_rebate_amount": format_currency(period_rebate),
            "net_cost": format_currency(net_cost),
            "annual_spend": format_currency(dealer.get("annual_spend")) if dealer else "N/A",
        },
    }


def compute_invoices(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows = build_invoice_list(ctx["invoices"], ctx["line_items"], ctx["dealers"], ctx["vendors"])
    summary = invoice_summary(rows)
    if not rows.empty:
        rows = rows.assign(date_display=rows["date"].map(format_date))
    return {
        "filters": asdict(filters),
        "summary": summary,
        "kpis": {
            "total_invoices": str(summary["total_invoices"]),
            "total_spend": format_currency(summary["total_spend"]),
            "average_invoice_value": format_currency(summary["average_invoice_value"]),
            "distinct_dealers": str(summary["distinct_dealers"]),
            "distinct_vendors": str(summary["distinct_vendors"]),
        },
        "rows": to_records(rows),
    }
