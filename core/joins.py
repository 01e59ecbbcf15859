from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from core.data import to_records

UNKNOWN_DEALER = "Unknown Dealer"
UNKNOWN_VENDOR = "Unknown Vendor"
UNKNOWN_PRODUCT = "Unknown Product"


class UnknownEntityError(KeyError):
    """Raised when a detail view is requested for an id missing from its master list."""

    def __init__(self, kind: str, entity_id: object) -> None:
        super().__init__(entity_id)
        self.kind = kind
        self.entity_id = entity_id

    def __str__(self) -> str:
        return f"{self.kind} {self.entity_id!r} not found"


def lookup_table(frame: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
    """id -> row dict. The first row wins when an id repeats."""
    if frame is None or frame.empty or "id" not in frame.columns:
        return {}
    deduped = frame.dropna(subset=["id"]).drop_duplicates(subset=["id"], keep="first")
    return {str(row["id"]): row for row in to_records(deduped)}


def resolve_name(table: Dict[str, Dict[str, Any]], key: Optional[str], fallback: str) -> str:
    row = table.get(key) if key is not None else None
    if not row or not row.get("name"):
        return fallback
    return str(row["name"])


def _fill_label(series: pd.Series, fallback: str) -> pd.Series:
    return series.where(series.notna() & (series.astype(str) != ""), fallback)


def _left_join(
    frame: pd.DataFrame,
    master: pd.DataFrame,
    *,
    on: str,
    columns: Dict[str, str],
) -> pd.DataFrame:
    dim = master[["id", *columns.keys()]].dropna(subset=["id"]).drop_duplicates(subset=["id"], keep="first")
    dim = dim.rename(columns={"id": on, **columns})
    out = frame.drop(columns=[c for c in columns.values() if c in frame.columns])
    return out.merge(dim, on=on, how="left")


def join_dealers(frame: pd.DataFrame, dealers: pd.DataFrame, *, on: str = "dealer_id", fallback: str = UNKNOWN_DEALER) -> pd.DataFrame:
    """Attach dealer_name / dealer_region. Unknown dealers get the fallback name and no region."""
    out = _left_join(frame, dealers, on=on, columns={"name": "dealer_name", "region": "dealer_region"})
    out["dealer_name"] = _fill_label(out["dealer_name"], fallback)
    return out


def join_vendors(frame: pd.DataFrame, vendors: pd.DataFrame, *, on: str = "vendor_id", fallback: str = UNKNOWN_VENDOR) -> pd.DataFrame:
    """Attach vendor_name / vendor_category. Unknown vendors get the fallback name and no category."""
    out = _left_join(frame, vendors, on=on, columns={"name": "vendor_name", "category": "vendor_category"})
    out["vendor_name"] = _fill_label(out["vendor_name"], fallback)
    return out


def join_products(frame: pd.DataFrame, products: pd.DataFrame, *, on: str = "product_id", fallback: str = UNKNOWN_PRODUCT) -> pd.DataFrame:
    out = _left_join(frame, products, on=on, columns={"name": "product_name", "sku": "sku", "category": "product_category"})
    out["product_name"] = _fill_label(out["product_name"], fallback)
    return out
