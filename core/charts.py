from __future__ import annotations

from typing import Any, Dict

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

SERIES_LABELS = {"total_spend": "Total Spend", "total_rebate": "Total Rebate"}
SERIES_COLORS = ["#64748b", "#16a34a"]


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def rebate_period_chart(series: pd.DataFrame) -> alt.Chart:
    """Spend and rebate lines per period, periods in the order given."""
    long_df = series.melt(id_vars="period", value_vars=list(SERIES_LABELS), var_name="metric", value_name="amount")
    long_df["metric"] = long_df["metric"].map(SERIES_LABELS)
    hover = alt.selection_point(fields=["metric"], on="mouseover", empty="all")
    return (
        alt.Chart(long_df)
        .mark_line(point={"filled": True, "size": 60})
        .encode(
            x=alt.X("period:O", title="Period", sort=list(series["period"]), axis=alt.Axis(grid=False)),
            y=alt.Y("amount:Q", title="Amount", axis=alt.Axis(format="$~s", gridDash=[3, 3], domain=False, ticks=False)),
            color=alt.Color("metric:N", title=None, scale=alt.Scale(domain=list(SERIES_LABELS.values()), range=SERIES_COLORS)),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.2)),
            tooltip=[
                alt.Tooltip("period:N", title="Period"),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("amount:Q", title="Amount", format="$,.2f"),
            ],
        )
        .add_params(hover)
        .properties(height=280)
    )


def spend_bar_chart(rows: pd.DataFrame, *, label_col: str, value_col: str, title: str) -> alt.Chart:
    """Horizontal bars for a ranked row set, largest on top."""
    hover = alt.selection_point(fields=[label_col], on="mouseover", empty="all")
    return (
        alt.Chart(rows)
        .mark_bar()
        .encode(
            x=alt.X(f"{value_col}:Q", title=title, axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            y=alt.Y(f"{label_col}:N", title=None, sort="-x"),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
            tooltip=[
                alt.Tooltip(f"{label_col}:N", title="Name"),
                alt.Tooltip(f"{value_col}:Q", title=title, format="$,.2f"),
            ],
        )
        .add_params(hover)
    )
