import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Dict, List, Optional

from core.data import load_dashboard_data, prepare_context
from core.formatting import format_currency, format_currency_columns, format_percent, format_percent_columns
from core.metrics_dealers import build_dealer_detail, build_dealer_metrics, dealer_summary
from core.metrics_invoices import build_invoice_detail, build_invoice_list, invoice_summary
from core.metrics_overview import compute_overview
from core.metrics_rebates import compute_rebates, rebates_by_dealer, rebates_by_period, rebates_by_vendor
from core.metrics_vendors import build_vendor_detail, build_vendor_metrics, vendor_summary


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(selected_periods: List[str], selected_regions: List[str], selected_categories: List[str]) -> str:
    period_chip = f"Periods: {', '.join(selected_periods)}" if selected_periods else "Periods: All"
    region_chip = f"Region: {', '.join(selected_regions)}" if selected_regions else "Region: All"
    cat_chip = f"Category: {', '.join(selected_categories)}" if selected_categories else "Category: All"
    return "".join([f"<span class='chip'>{txt}</span>" for txt in [period_chip, region_chip, cat_chip]])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    top = st.container()
    c1, c2 = top.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


def render_kpis(items: List[Dict[str, str]]):
    cols = st.columns(len(items))
    for col, item in zip(cols, items):
        col.metric(item["label"], item["value"], help=item.get("help"))


def display_table(df: pd.DataFrame, *, currency: List[str] = (), percent: List[str] = (), rename: Optional[Dict[str, str]] = None):
    if df.empty:
        st.info("No rows for the selected filters.")
        return
    shown = format_percent_columns(format_currency_columns(df, currency), percent)
    if rename:
        shown = shown.rename(columns=rename)
    st.dataframe(shown, hide_index=True, use_container_width=True)


# ---------- UI setup ----------
st.set_page_config(page_title="GPO Reporting Dashboard", layout="wide")
inject_base_styles()
st.title("GPO Reporting Dashboard")
st.caption("High-level view of dealer, vendor, and rebate performance based on historical transaction data.")

data_ctx = load_dashboard_data()
if not data_ctx.get("files"):
    st.error("No data files found. Place dealers.json, vendors.json, products.json, invoices.json and rebate-earnings.json in the data directory.")
    st.stop()

# ----- Sidebar: navigation + filters -----
with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", ["Dashboard", "Dealers", "Vendors", "Invoices", "Rebates"], index=0)

    st.markdown("---")
    st.markdown("### Quick filters")
    selected_periods = st.multiselect("Periods", options=data_ctx.get("periods", []), default=[])
    selected_regions = st.multiselect("Dealer Region", options=data_ctx.get("regions", []), default=[])
    selected_categories = st.multiselect("Vendor Category", options=data_ctx.get("categories", []), default=[])

    st.markdown("---")
    with st.expander("Advanced settings", expanded=False):
        top_n = st.slider("Top N rows", min_value=3, max_value=25, value=5, step=1)
        recent_limit = st.slider("Rows in detail views", min_value=3, max_value=20, value=5, step=1)

filters = {
    "selected_periods": selected_periods,
    "selected_regions": selected_regions,
    "selected_categories": selected_categories,
    "top_n": top_n,
    "recent_limit": recent_limit,
}

ctx = prepare_context(filters, data_ctx)
dealers = ctx["dealers"]
vendors = ctx["vendors"]
invoices = ctx["invoices"]
line_items = ctx["line_items"]
rebate_earnings = ctx["rebate_earnings"]
filter_summary_html = format_filter_summary(selected_periods, selected_regions, selected_categories)


# ----- Page renderers -----
def render_dashboard_page():
    payload = compute_overview(ctx["filters"], ctx)
    top_dealers = pd.DataFrame(payload["top_dealers"])
    render_page_header("Dashboard", "Home / Dashboard", filter_summary_html, export_df=top_dealers, export_name="overview.csv")
    fmt = payload["formatted"]
    with card("KPI Tiles"):
        render_kpis(
            [
                {"label": "Total Dealers", "value": fmt["total_dealers"], "help": "Active dealer partners"},
                {"label": "Total Vendors", "value": fmt["total_vendors"], "help": "Vendor relationships"},
                {"label": "GPO Spend", "value": fmt["total_spend"], "help": "Sum of invoice line totals across all dealers"},
                {"label": "Rebate Paid", "value": fmt["total_rebate"], "help": "Total rebates earned"},
                {"label": "Average Rebate %", "value": fmt["average_rebate_percent"], "help": "Weighted by spend"},
            ]
        )

    with card("Rebates Over Time"):
        chart = payload["charts"].get("rebates_over_time")
        if chart:
            st.vega_lite_chart(chart, use_container_width=True)
        else:
            st.info("No rebate earnings for the selected filters.")

    cols = st.columns(2)
    with cols[0]:
        with card("Top Dealers by Spend"):
            display_table(top_dealers, currency=["total_spend"], rename={"dealer_name": "Dealer", "region": "Region", "total_spend": "Total Spend"})
    with cols[1]:
        with card("Top Vendors by Rebate"):
            top_vendors = pd.DataFrame(payload["top_vendors"])
            display_table(top_vendors, currency=["total_rebate"], rename={"vendor_name": "Vendor", "category": "Category", "total_rebate": "Total Rebate"})


def render_dealer_detail(dealer_id: str):
    detail = build_dealer_detail(dealer_id, ctx, top_limit=top_n, recent_limit=recent_limit)
    dealer = detail["dealer"]
    fmt = detail["formatted"]
    st.subheader(dealer["name"])
    st.caption(f"{dealer.get('region') or 'No region'} · Annual spend capacity {fmt['annual_spend']}")
    render_kpis(
        [
            {"label": "Total Spend", "value": fmt["total_spend"]},
            {"label": "Total Rebate", "value": fmt["total_rebate"]},
            {"label": "Effective Rebate %", "value": fmt["effective_rebate_percent"]},
            {"label": "Total Invoices", "value": str(detail["kpis"]["invoice_count"])},
        ]
    )
    cols = st.columns(2)
    with cols[0]:
        st.markdown("**Top Vendors by Spend**")
        display_table(pd.DataFrame(detail["top_vendors"]), currency=["spend"])
        st.markdown("**Spend by Category**")
        display_table(pd.DataFrame(detail["categories"]), currency=["spend"], percent=["percentage"])
    with cols[1]:
        st.markdown("**Recent Invoices**")
        display_table(pd.DataFrame(detail["recent_invoices"]), currency=["total_amount"])
        st.markdown("**Rebates by Period**")
        display_table(pd.DataFrame(detail["period_rebates"]), currency=["total_spend", "total_rebate"])


def render_dealers_page():
    rows = build_dealer_metrics(dealers, invoices, line_items, rebate_earnings)
    summary = dealer_summary(rows)
    render_page_header("Dealers", "Home / Dealers", filter_summary_html, export_df=rows, export_name="dealers.csv")
    with card("Summary"):
        render_kpis(
            [
                {"label": "Total Dealers", "value": str(summary["total_dealers"])},
                {"label": "Combined Spend", "value": format_currency(summary["combined_spend"])},
                {"label": "Combined Rebate", "value": format_currency(summary["combined_rebate"])},
            ]
        )
    with card("Dealer Performance"):
        display_table(
            rows.drop(columns=["dealer_id"]),
            currency=["annual_spend", "total_spend", "total_rebate"],
            percent=["effective_rebate_percent"],
        )
    if not rows.empty:
        with card("Dealer Details"):
            names = dict(zip(rows["dealer_id"], rows["dealer_name"]))
            choice = st.selectbox("Dealer", options=list(names), format_func=lambda k: names[k])
            if choice:
                render_dealer_detail(choice)


def render_vendor_detail(vendor_id: str):
    detail = build_vendor_detail(vendor_id, ctx, top_limit=top_n, recent_limit=recent_limit)
    vendor = detail["vendor"]
    fmt = detail["formatted"]
    kpis = detail["kpis"]
    st.subheader(vendor["name"])
    st.caption(f"{vendor.get('category') or 'No category'} · Base rebate {fmt['base_rebate_rate']}")
    render_kpis(
        [
            {"label": "Total Spend", "value": fmt["total_spend"]},
            {"label": "Total Rebate", "value": fmt["total_rebate"]},
            {"label": "Effective Rebate %", "value": fmt["effective_rebate_percent"]},
            {"label": "Dealers Served", "value": str(kpis["dealers_served"])},
        ]
    )
    cols = st.columns(2)
    with cols[0]:
        st.markdown("**Top Dealers by Spend**")
        display_table(pd.DataFrame(detail["top_dealers"]), currency=["spend"])
        st.markdown("**Top Products by Revenue**")
        display_table(pd.DataFrame(detail["top_products"]), currency=["unit_cost", "revenue"])
    with cols[1]:
        st.markdown("**Rebates by Period**")
        display_table(pd.DataFrame(detail["period_rebates"]), currency=["total_spend", "total_rebate"])
        st.markdown("**Recent Invoices**")
        display_table(pd.DataFrame(detail["recent_invoices"]), currency=["total_amount"])
    with st.expander(f"Product catalog ({kpis['product_count']})"):
        display_table(pd.DataFrame(detail["products"]), currency=["unit_cost", "revenue"])


def render_vendors_page():
    rows = build_vendor_metrics(vendors, invoices, line_items, rebate_earnings)
    summary = vendor_summary(rows)
    render_page_header("Vendors", "Home / Vendors", filter_summary_html, export_df=rows, export_name="vendors.csv")
    with card("Summary"):
        render_kpis(
            [
                {"label": "Total Vendors", "value": str(summary["total_vendors"])},
                {"label": "Combined Spend", "value": format_currency(summary["combined_spend"])},
                {"label": "Combined Rebate", "value": format_currency(summary["combined_rebate"])},
            ]
        )
    with card("Vendor Performance"):
        display_table(
            rows.drop(columns=["vendor_id"]),
            currency=["total_spend", "total_rebate"],
            percent=["base_rebate_rate", "effective_rebate_percent"],
        )
    if not rows.empty:
        with card("Vendor Details"):
            names = dict(zip(rows["vendor_id"], rows["vendor_name"]))
            choice = st.selectbox("Vendor", options=list(names), format_func=lambda k: names[k])
            if choice:
                render_vendor_detail(choice)


def render_invoice_detail(invoice_id: str):
    detail = build_invoice_detail(invoice_id, ctx)
    inv = detail["invoice"]
    fmt = detail["formatted"]
    st.subheader(inv["invoice_number"])
    st.caption(f"Invoice date {inv['date_display']} · {inv.get('period') or ''}")
    cols = st.columns(2)
    cols[0].markdown(f"**Bill To**  \n{detail['dealer']['name']}  \n{detail['dealer'].get('region') or ''}  \nAnnual spend capacity {fmt['annual_spend']}")
    cols[1].markdown(f"**Vendor**  \n{detail['vendor']['name']}  \n{detail['vendor'].get('category') or ''}")
    display_table(pd.DataFrame(detail["line_items"]), currency=["unit_price", "line_total"])
    render_kpis(
        [
            {"label": "Subtotal", "value": fmt["subtotal"]},
            {"label": "Estimated Rebate", "value": fmt["estimated_rebate"], "help": "Subtotal x vendor base rebate rate"},
            {"label": "Period Rebate Rate", "value": fmt["period_rebate_percent"]},
            {"label": "Rebate at Period Rate", "value": fmt["period_rebate_amount"]},
            {"label": "Net Cost (After Rebate)", "value": fmt["net_cost"]},
        ]
    )
    if detail["rebate_history"]:
        st.markdown(f"**Historical Rebate Performance** ({detail['dealer']['name']} x {detail['vendor']['name']})")
        display_table(
            pd.DataFrame(detail["rebate_history"]),
            currency=["spend", "rebate_amount"],
            percent=["rebate_percent_applied"],
            rename={"period": "Period", "spend": "Period Spend", "rebate_amount": "Rebate Earned", "rebate_percent_applied": "Rebate Rate"},
        )


def render_invoices_page():
    rows = build_invoice_list(invoices, line_items, dealers, vendors)
    summary = invoice_summary(rows)
    render_page_header("Invoices", "Home / Invoices", filter_summary_html, export_df=rows, export_name="invoices.csv")
    with card("Summary"):
        render_kpis(
            [
                {"label": "Total Invoices", "value": str(summary["total_invoices"])},
                {"label": "Total Spend", "value": format_currency(summary["total_spend"])},
                {"label": "Average Invoice", "value": format_currency(summary["average_invoice_value"])},
                {"label": "Dealers", "value": str(summary["distinct_dealers"])},
                {"label": "Vendors", "value": str(summary["distinct_vendors"])},
            ]
        )
    with card("Invoice List"):
        display_table(rows.drop(columns=["id", "dealer_id", "vendor_id"]), currency=["total_amount"])
    if not rows.empty:
        with card("Invoice Details"):
            numbers = dict(zip(rows["id"], rows["invoice_number"]))
            choice = st.selectbox("Invoice", options=list(numbers), format_func=lambda k: numbers[k])
            if choice:
                render_invoice_detail(choice)


def render_rebates_page():
    payload = compute_rebates(ctx["filters"], ctx)
    period_rows = rebates_by_period(rebate_earnings)
    render_page_header("Rebates", "Home / Rebates", filter_summary_html, export_df=period_rows, export_name="rebates.csv")
    summary = payload["summary"]
    with card("Summary"):
        render_kpis(
            [
                {"label": "Total Spend", "value": format_currency(summary["total_spend"])},
                {"label": "Total Rebate", "value": format_currency(summary["total_rebate"])},
                {"label": "Effective Rebate %", "value": format_percent(summary["effective_rebate_percent"])},
                {"label": "Periods", "value": str(summary["period_count"])},
            ]
        )
    chart = payload["charts"].get("rebates_by_period")
    if chart:
        with card("Rebates by Period"):
            st.vega_lite_chart(chart, use_container_width=True)
    cols = st.columns(2)
    with cols[0]:
        with card("By Dealer"):
            display_table(
                rebates_by_dealer(rebate_earnings, dealers).drop(columns=["dealer_id"]),
                currency=["total_spend", "total_rebate"],
                percent=["effective_rebate_percent"],
            )
    with cols[1]:
        with card("By Vendor"):
            display_table(
                rebates_by_vendor(rebate_earnings, vendors).drop(columns=["vendor_id"]),
                currency=["total_spend", "total_rebate"],
                percent=["effective_rebate_percent"],
            )
    with card("Quarterly Performance"):
        display_table(period_rows, currency=["total_spend", "total_rebate"], percent=["effective_rebate_percent"])


if nav_choice == "Dashboard":
    render_dashboard_page()
elif nav_choice == "Dealers":
    render_dealers_page()
elif nav_choice == "Vendors":
    render_vendors_page()
elif nav_choice == "Invoices":
    render_invoices_page()
else:
    render_rebates_page()
