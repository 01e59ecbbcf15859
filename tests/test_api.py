from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import api.main as api_main


@pytest.fixture()
def client(monkeypatch, data_ctx) -> TestClient:
    monkeypatch.setattr(api_main, "load_dashboard_data", lambda: data_ctx)
    return TestClient(api_main.app)


class TestMetaRoutes:
    def test_periods(self, client) -> None:
        resp = client.get("/meta/periods")

        assert resp.status_code == 200
        assert resp.json() == {"values": ["2025-Q1", "2025-Q2", "2025-Q3"]}

    def test_regions_and_categories(self, client) -> None:
        assert client.get("/meta/regions").json()["values"] == ["North", "South"]
        assert client.get("/meta/categories").json()["values"] == ["Detailing", "Parts"]


class TestPageRoutes:
    def test_overview(self, client) -> None:
        body = client.post("/overview", json={}).json()

        assert body["kpis"]["total_dealers"] == 3
        assert body["formatted"]["total_spend"] == "$230.00"
        assert body["top_dealers"][0]["dealer_name"] == "Unknown"

    def test_region_filter_flows_through(self, client) -> None:
        body = client.post("/invoices", json={"selected_regions": ["North"]}).json()

        assert body["summary"]["total_invoices"] == 2
        assert body["filters"]["selected_regions"] == ["North"]

    def test_unknown_period_is_ignored(self, client) -> None:
        body = client.post("/rebates", json={"selected_periods": ["1999-Q1"]}).json()

        assert body["filters"]["selected_periods"] == []
        assert body["summary"]["period_count"] == 3

    def test_dealers_and_vendors(self, client) -> None:
        dealers = client.post("/dealers", json={"top_n": 2}).json()
        vendors = client.post("/vendors", json={}).json()

        assert [r["dealer_id"] for r in dealers["rows"]] == ["d1", "d2", "d3"]
        assert vendors["summary"]["total_vendors"] == 2

    def test_zero_percent_serializes_as_number(self, client) -> None:
        rows = client.post("/dealers", json={}).json()["rows"]
        assert rows[-1]["effective_rebate_percent"] == 0.0


class TestDetailRoutes:
    def test_dealer_detail(self, client) -> None:
        body = client.post("/dealers/d1", json={"recent_limit": 1}).json()

        assert body["kpis"]["total_spend"] == 80.0
        assert len(body["recent_invoices"]) == 1

    def test_vendor_detail(self, client) -> None:
        assert client.post("/vendors/v1", json={}).json()["kpis"]["dealers_served"] == 2

    def test_vendor_detail_limits(self, client) -> None:
        body = client.post("/vendors/v1", json={"top_n": 1, "recent_limit": 2}).json()

        assert len(body["top_products"]) == 1
        assert len(body["recent_invoices"]) == 2

    def test_invoice_detail(self, client) -> None:
        body = client.post("/invoices/i4", json={}).json()
        assert body["dealer"]["name"] == "Unknown Dealer"

    def test_invoice_detail_net_cost(self, client) -> None:
        body = client.post("/invoices/i1", json={}).json()

        assert body["net_cost"] == 19.0
        assert [r["period"] for r in body["rebate_history"]] == ["2025-Q2"]

    @pytest.mark.parametrize("path", ["/dealers/nope", "/vendors/nope", "/invoices/nope"])
    def test_unknown_ids_are_404(self, client, path) -> None:
        resp = client.post(path, json={})

        assert resp.status_code == 404
        assert resp.json()["type"] == "UnknownEntityError"


class TestExport:
    def test_dealers_csv(self, client) -> None:
        resp = client.post("/export/dealers", json={})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.strip().splitlines()
        assert lines[0].startswith("dealer_id,dealer_name")
        assert len(lines) == 4

    def test_limit(self, client) -> None:
        resp = client.post("/export/invoices?limit=2", json={})
        assert len(resp.text.strip().splitlines()) == 3

    def test_overview_filename(self, client) -> None:
        resp = client.post("/export/dashboard", json={})
        assert "overview.csv" in resp.headers["content-disposition"]
