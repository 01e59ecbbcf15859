from __future__ import annotations

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from core.filters import DashboardFilters, normalize_filters

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATA_DIR_ENV = "GPO_DATA_DIR"

SOURCE_FILES = {
    "dealers": "dealers.json",
    "vendors": "vendors.json",
    "products": "products.json",
    "invoices": "invoices.json",
    "rebate_earnings": "rebate-earnings.json",
}

DEALER_COLUMNS = {
    "id": "id",
    "name": "name",
    "region": "region",
    "annualSpend": "annual_spend",
}

VENDOR_COLUMNS = {
    "id": "id",
    "name": "name",
    "category": "category",
    "baseRebateRate": "base_rebate_rate",
}

PRODUCT_COLUMNS = {
    "id": "id",
    "vendorId": "vendor_id",
    "sku": "sku",
    "name": "name",
    "category": "category",
    "unitCost": "unit_cost",
}

INVOICE_COLUMNS = {
    "id": "id",
    "dealerId": "dealer_id",
    "vendorId": "vendor_id",
    "invoiceNumber": "invoice_number",
    "date": "date",
}

LINE_ITEM_COLUMNS = {
    "productId": "product_id",
    "quantity": "quantity",
    "unitPrice": "unit_price",
}

REBATE_EARNING_COLUMNS = {
    "id": "id",
    "dealerId": "dealer_id",
    "vendorId": "vendor_id",
    "period": "period",
    "spend": "spend",
    "rebatePercentApplied": "rebate_percent_applied",
    "rebateAmount": "rebate_amount",
}

ID_COLUMNS = ["id", "dealer_id", "vendor_id", "product_id", "invoice_id"]


def get_data_dir() -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    return Path(override) if override else DATA_DIR


def get_source_files(data_dir: Optional[Path] = None) -> List[Path]:
    data_dir = data_dir or get_data_dir()
    return [data_dir / name for name in SOURCE_FILES.values() if (data_dir / name).exists()]


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((f.name, f.stat().st_mtime) for f in files)


def invoice_period(value: object) -> Optional[str]:
    """Map an ISO date like 2025-05-14 to its quarter label (2025-Q2)."""
    if value is None or pd.isna(value):
        return None
    match = re.match(r"^(\d{4})-(\d{2})", str(value).strip())
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return f"{match.group(1)}-Q{(month - 1) // 3 + 1}"


def normalize_id(value: object) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value).strip()
    return s or None


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    return df


def normalize_id_columns(df: pd.DataFrame) -> pd.DataFrame:
    for col in ID_COLUMNS:
        if col in df.columns:
            df[col] = df[col].map(normalize_id).astype(object)
    return df


def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Frame -> list of plain dicts, with NaN/NA mapped to None."""
    if df is None or df.empty:
        return []
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


def _frame(records: Optional[Sequence[Mapping[str, Any]]], columns: Mapping[str, str]) -> pd.DataFrame:
    rows = [{dst: rec.get(src) for src, dst in columns.items()} for rec in (records or [])]
    df = pd.DataFrame(rows, columns=list(columns.values()))
    return normalize_id_columns(df)


# ---------------- Frame builders ----------------
def dealers_frame(records: Optional[Sequence[Mapping[str, Any]]]) -> pd.DataFrame:
    return numericize(_frame(records, DEALER_COLUMNS), ["annual_spend"])


def vendors_frame(records: Optional[Sequence[Mapping[str, Any]]]) -> pd.DataFrame:
    return numericize(_frame(records, VENDOR_COLUMNS), ["base_rebate_rate"])


def products_frame(records: Optional[Sequence[Mapping[str, Any]]]) -> pd.DataFrame:
    return numericize(_frame(records, PRODUCT_COLUMNS), ["unit_cost"])


def invoice_frames(records: Optional[Sequence[Mapping[str, Any]]]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split invoice records into an invoice frame and a line-item frame.

    Line items keep their position within the invoice as ``line_no`` and carry
    ``line_total = quantity * unit_price``.
    """
    invoices = _frame(records, INVOICE_COLUMNS)
    invoices["period"] = invoices["date"].map(invoice_period).astype(object)

    lines: List[Dict[str, Any]] = []
    for rec in records or []:
        for line_no, item in enumerate(rec.get("lineItems") or []):
            row = {dst: item.get(src) for src, dst in LINE_ITEM_COLUMNS.items()}
            row["invoice_id"] = rec.get("id")
            row["line_no"] = line_no
            lines.append(row)
    line_items = pd.DataFrame(lines, columns=["invoice_id", "line_no", *LINE_ITEM_COLUMNS.values()])
    line_items = normalize_id_columns(line_items)
    line_items = numericize(line_items, ["quantity", "unit_price"])
    line_items["line_no"] = pd.to_numeric(line_items["line_no"]).astype(int)
    line_items["line_total"] = line_items["quantity"] * line_items["unit_price"]
    return invoices, line_items


def rebate_earnings_frame(records: Optional[Sequence[Mapping[str, Any]]]) -> pd.DataFrame:
    df = _frame(records, REBATE_EARNING_COLUMNS)
    df["period"] = df["period"].map(lambda v: None if v is None or pd.isna(v) else str(v).strip()).astype(object)
    return numericize(df, ["spend", "rebate_percent_applied", "rebate_amount"])


def _distinct_sorted(series: pd.Series) -> List[str]:
    return sorted({str(v) for v in series.dropna().tolist() if str(v)})


def build_data_context(
    *,
    dealers: Optional[Sequence[Mapping[str, Any]]] = None,
    vendors: Optional[Sequence[Mapping[str, Any]]] = None,
    products: Optional[Sequence[Mapping[str, Any]]] = None,
    invoices: Optional[Sequence[Mapping[str, Any]]] = None,
    rebate_earnings: Optional[Sequence[Mapping[str, Any]]] = None,
    files: Optional[List[str]] = None,
) -> Dict[str, object]:
    """Build the frame context every compute function reads from."""
    dealers_df = dealers_frame(dealers)
    vendors_df = vendors_frame(vendors)
    invoices_df, line_items_df = invoice_frames(invoices)
    earnings_df = rebate_earnings_frame(rebate_earnings)

    periods = sorted(set(_distinct_sorted(earnings_df["period"])) | set(_distinct_sorted(invoices_df["period"])))
    return {
        "files": files or [],
        "periods": periods,
        "regions": _distinct_sorted(dealers_df["region"]),
        "categories": _distinct_sorted(vendors_df["category"]),
        "dealers": dealers_df,
        "vendors": vendors_df,
        "products": products_frame(products),
        "invoices": invoices_df,
        "line_items": line_items_df,
        "rebate_earnings": earnings_df,
    }


# ---------------- Loaders ----------------
def read_records(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        logger.warning("data file %s not found; treating it as empty", path)
        return []
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if isinstance(payload, dict):
        # Some exports wrap the collection as {"items": [...]}.
        payload = payload.get("items") or payload.get("data") or []
    return list(payload)


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(data_dir: str, files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    base = Path(data_dir)
    raw = {key: read_records(base / name) for key, name in SOURCE_FILES.items()}
    logger.info(
        "loaded dashboard data from %s: %s",
        base,
        ", ".join(f"{key}={len(records)}" for key, records in raw.items()),
    )
    return build_data_context(files=[name for name, _ in files_sig], **raw)


def load_dashboard_data(data_dir: Optional[Path] = None) -> Dict[str, object]:
    data_dir = data_dir or get_data_dir()
    files = get_source_files(data_dir)
    if not files:
        logger.warning("no data files found in %s", data_dir)
        return build_data_context()
    return _load_dashboard_data_cached(str(data_dir), file_signature(files))


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    """Apply dashboard filters to the loaded frames.

    Region and category filters restrict the dealer/vendor master lists and,
    through them, the invoices and earnings. Period filters apply to rebate
    earnings by label and to invoices by the quarter of their date. Without
    a filter, rows pointing at unknown dealers or vendors are kept so they
    surface under the fallback labels.
    """
    available_periods = list(data_ctx.get("periods") or [])
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters, available_periods=available_periods)

    dealers: pd.DataFrame = data_ctx.get("dealers", dealers_frame([])).copy()
    vendors: pd.DataFrame = data_ctx.get("vendors", vendors_frame([])).copy()
    products: pd.DataFrame = data_ctx.get("products", products_frame([])).copy()
    empty_invoices, empty_lines = invoice_frames([])
    invoices: pd.DataFrame = data_ctx.get("invoices", empty_invoices).copy()
    line_items: pd.DataFrame = data_ctx.get("line_items", empty_lines).copy()
    earnings: pd.DataFrame = data_ctx.get("rebate_earnings", rebate_earnings_frame([])).copy()

    if filt.selected_regions:
        dealers = dealers[dealers["region"].isin(filt.selected_regions)]
        keep = set(dealers["id"])
        invoices = invoices[invoices["dealer_id"].isin(keep)]
        earnings = earnings[earnings["dealer_id"].isin(keep)]

    if filt.selected_categories:
        vendors = vendors[vendors["category"].isin(filt.selected_categories)]
        keep = set(vendors["id"])
        products = products[products["vendor_id"].isin(keep)]
        invoices = invoices[invoices["vendor_id"].isin(keep)]
        earnings = earnings[earnings["vendor_id"].isin(keep)]

    if filt.selected_periods:
        invoices = invoices[invoices["period"].isin(filt.selected_periods)]
        earnings = earnings[earnings["period"].isin(filt.selected_periods)]

    line_items = line_items[line_items["invoice_id"].isin(set(invoices["id"]))]

    return {
        "filters": filt,
        "periods": available_periods,
        "regions": list(data_ctx.get("regions") or []),
        "categories": list(data_ctx.get("categories") or []),
        "dealers": dealers.reset_index(drop=True),
        "vendors": vendors.reset_index(drop=True),
        "products": products.reset_index(drop=True),
        "invoices": invoices.reset_index(drop=True),
        "line_items": line_items.reset_index(drop=True),
        "rebate_earnings": earnings.reset_index(drop=True),
    }
