from __future__ import annotations

import logging
import math
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaListResponse
from core.data import load_dashboard_data, prepare_context
from core.filters import DashboardFilters, normalize_filters
from core.joins import UnknownEntityError
from core.metrics_dealers import build_dealer_detail, build_dealer_metrics, compute_dealers
from core.metrics_invoices import build_invoice_detail, build_invoice_list, compute_invoices
from core.metrics_overview import compute_overview, top_dealers_by_spend
from core.metrics_rebates import compute_rebates, rebates_by_period
from core.metrics_vendors import build_vendor_detail, build_vendor_metrics, compute_vendors


app = FastAPI(title="GPO Reporting Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: DashboardFiltersModel, *, available_periods: list[str]) -> DashboardFilters:
    raw = model.model_dump()
    return normalize_filters(raw, available_periods=available_periods)


def _context(model: DashboardFiltersModel) -> Tuple[DashboardFilters, Dict[str, Any]]:
    data_ctx = load_dashboard_data()
    f = _filters_from_model(model, available_periods=data_ctx.get("periods", []))
    return f, prepare_context(f, data_ctx)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/periods", response_model=MetaListResponse)
def meta_periods():
    try:
        data_ctx = load_dashboard_data()
        return MetaListResponse(values=[str(p) for p in data_ctx.get("periods", []) or []])
    except Exception as exc:
        logger.exception("meta_periods failed")
        return _error(exc)


@app.get("/meta/regions", response_model=MetaListResponse)
def meta_regions():
    try:
        data_ctx = load_dashboard_data()
        return MetaListResponse(values=[str(r) for r in data_ctx.get("regions", []) or []])
    except Exception as exc:
        logger.exception("meta_regions failed")
        return _error(exc)


@app.get("/meta/categories", response_model=MetaListResponse)
def meta_categories():
    try:
        data_ctx = load_dashboard_data()
        return MetaListResponse(values=[str(c) for c in data_ctx.get("categories", []) or []])
    except Exception as exc:
        logger.exception("meta_categories failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/dealers")
def dealers(filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(compute_dealers(f, ctx))
    except Exception as exc:
        logger.exception("dealers failed")
        return _error(exc)


@app.post("/dealers/{dealer_id}")
def dealer_detail(dealer_id: str, filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(build_dealer_detail(dealer_id, ctx, top_limit=f.top_n, recent_limit=f.recent_limit))
    except UnknownEntityError as exc:
        return _error(exc, status_code=404)
    except Exception as exc:
        logger.exception("dealer_detail failed")
        return _error(exc)


@app.post("/vendors")
def vendors(filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(compute_vendors(f, ctx))
    except Exception as exc:
        logger.exception("vendors failed")
        return _error(exc)


@app.post("/vendors/{vendor_id}")
def vendor_detail(vendor_id: str, filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(build_vendor_detail(vendor_id, ctx, top_limit=f.top_n, recent_limit=f.recent_limit))
    except UnknownEntityError as exc:
        return _error(exc, status_code=404)
    except Exception as exc:
        logger.exception("vendor_detail failed")
        return _error(exc)


@app.post("/invoices")
def invoices(filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(compute_invoices(f, ctx))
    except Exception as exc:
        logger.exception("invoices failed")
        return _error(exc)


@app.post("/invoices/{invoice_id}")
def invoice_detail(invoice_id: str, filters: DashboardFiltersModel):
    try:
        _, ctx = _context(filters)
        return _json(build_invoice_detail(invoice_id, ctx))
    except UnknownEntityError as exc:
        return _error(exc, status_code=404)
    except Exception as exc:
        logger.exception("invoice_detail failed")
        return _error(exc)


@app.post("/rebates")
def rebates(filters: DashboardFiltersModel):
    try:
        f, ctx = _context(filters)
        return _json(compute_rebates(f, ctx))
    except Exception as exc:
        logger.exception("rebates failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: DashboardFiltersModel, limit: int = Query(default=0, ge=0)):
    f, ctx = _context(filters)

    filename = f"{page}.csv"
    if page in {"overview", "dashboard"}:
        export_df = top_dealers_by_spend(ctx["dealers"], ctx["invoices"], ctx["line_items"], limit or f.top_n)
        filename = "overview.csv"
    elif page == "dealers":
        export_df = build_dealer_metrics(ctx["dealers"], ctx["invoices"], ctx["line_items"], ctx["rebate_earnings"])
    elif page == "vendors":
        export_df = build_vendor_metrics(ctx["vendors"], ctx["invoices"], ctx["line_items"], ctx["rebate_earnings"])
    elif page == "invoices":
        export_df = build_invoice_list(ctx["invoices"], ctx["line_items"], ctx["dealers"], ctx["vendors"])
    elif page == "rebates":
        export_df = rebates_by_period(ctx["rebate_earnings"])
    else:
        export_df = pd.DataFrame()

    if limit and not export_df.empty:
        export_df = export_df.head(limit)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
