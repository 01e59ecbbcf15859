from __future__ import annotations

import pandas as pd
import pytest

from core.data import build_data_context
from core.filters import DashboardFilters
from core.joins import UnknownEntityError
from core.metrics_dealers import build_dealer_detail, build_dealer_metrics, compute_dealers, dealer_summary


def _metrics(ctx) -> pd.DataFrame:
    return build_dealer_metrics(ctx["dealers"], ctx["invoices"], ctx["line_items"], ctx["rebate_earnings"])


class TestDealerMetrics:
    def test_two_invoices_same_vendor(self) -> None:
        data = build_data_context(
            dealers=[{"id": "D1", "name": "Dealer One", "region": "East", "annualSpend": 0}],
            vendors=[{"id": "V1", "name": "Vendor One", "category": "Parts", "baseRebateRate": 1.0}],
            invoices=[
                {"id": "a", "dealerId": "D1", "vendorId": "V1", "invoiceNumber": "A", "date": "2025-01-01",
                 "lineItems": [{"productId": "x", "quantity": 2, "unitPrice": 10}]},
                {"id": "b", "dealerId": "D1", "vendorId": "V1", "invoiceNumber": "B", "date": "2025-01-02",
                 "lineItems": [{"productId": "y", "quantity": 3, "unitPrice": 20}]},
            ],
        )
        row = _metrics(data).iloc[0]

        assert row["total_spend"] == pytest.approx(80.0)
        assert row["vendor_count"] == 1

    def test_every_master_dealer_sorted_by_spend(self, ctx) -> None:
        rows = _metrics(ctx)

        assert rows["dealer_id"].tolist() == ["d1", "d2", "d3"]
        assert rows["total_spend"].tolist() == [80.0, 50.0, 0.0]
        assert rows["total_rebate"].tolist() == [30.0, 20.0, 0.0]
        assert rows["vendor_count"].tolist() == [1, 1, 0]

    def test_zero_spend_has_zero_percent(self, ctx) -> None:
        rows = _metrics(ctx).set_index("dealer_id")

        assert rows.loc["d3", "effective_rebate_percent"] == 0.0
        assert rows.loc["d1", "effective_rebate_percent"] == pytest.approx(37.5)
        assert not rows["effective_rebate_percent"].isna().any()

    def test_equal_spend_keeps_master_order(self) -> None:
        data = build_data_context(
            dealers=[{"id": k, "name": k.upper(), "region": "R"} for k in ["z", "y", "x"]],
        )
        assert _metrics(data)["dealer_id"].tolist() == ["z", "y", "x"]

    def test_spend_matches_line_totals_per_dealer(self, ctx) -> None:
        rows = _metrics(ctx).set_index("dealer_id")
        lines = ctx["line_items"].merge(ctx["invoices"][["id", "dealer_id"]], left_on="invoice_id", right_on="id")
        expected = lines.groupby("dealer_id")["line_total"].sum()

        for dealer_id in ["d1", "d2"]:
            assert rows.loc[dealer_id, "total_spend"] == pytest.approx(expected[dealer_id])

    def test_summary(self, ctx) -> None:
        summary = dealer_summary(_metrics(ctx))
        assert summary == {"total_dealers": 3, "combined_spend": 130.0, "combined_rebate": 50.0}


class TestDealerDetail:
    def test_known_dealer(self, ctx) -> None:
        detail = build_dealer_detail("d1", ctx)

        assert detail["dealer"]["name"] == "Alpha Auto"
        assert detail["kpis"] == {
            "total_spend": 80.0,
            "total_rebate": 30.0,
            "effective_rebate_percent": 37.5,
            "invoice_count": 2,
        }
        assert detail["formatted"]["annual_spend"] == "$100.0K"
        assert [v["vendor_name"] for v in detail["top_vendors"]] == ["Parts Co"]
        assert detail["categories"] == [{"category": "Parts", "spend": 80.0, "percentage": 100.0}]
        assert [r["invoice_number"] for r in detail["recent_invoices"]] == ["INV-002", "INV-001"]
        assert [p["period"] for p in detail["period_rebates"]] == ["2025-Q2"]
        assert "top_vendors" in detail["charts"]

    def test_recent_limit(self, ctx) -> None:
        detail = build_dealer_detail("d1", ctx, recent_limit=1)

        assert len(detail["recent_invoices"]) == 1
        assert len(detail["top_vendors"]) == 1

    def test_top_limit_leaves_recent_invoices_alone(self, ctx) -> None:
        detail = build_dealer_detail("d1", ctx, top_limit=0)

        assert detail["top_vendors"] == []
        assert len(detail["recent_invoices"]) == 2

    def test_idle_dealer(self, ctx) -> None:
        detail = build_dealer_detail("d3", ctx)

        assert detail["kpis"]["effective_rebate_percent"] == 0.0
        assert detail["top_vendors"] == []
        assert detail["categories"] == []
        assert detail["charts"] == {}

    def test_missing_dealer(self, ctx) -> None:
        with pytest.raises(UnknownEntityError):
            build_dealer_detail("dX", ctx)


class TestComputeDealers:
    def test_payload(self, ctx) -> None:
        payload = compute_dealers(DashboardFilters(top_n=2), ctx)

        assert payload["kpis"]["total_dealers"] == "3"
        assert payload["kpis"]["combined_spend"] == "$130.00"
        assert [r["dealer_id"] for r in payload["rows"]] == ["d1", "d2", "d3"]
        assert "top_dealers" in payload["charts"]
