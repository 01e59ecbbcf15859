from __future__ import annotations

import pandas as pd
import pytest

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


class TestLookupTable:
    def test_first_row_wins_on_duplicate_ids(self) -> None:
        frame = pd.DataFrame([{"id": "d1", "name": "First"}, {"id": "d1", "name": "Second"}])
        assert lookup_table(frame)["d1"]["name"] == "First"

    def test_empty_frame(self) -> None:
        assert lookup_table(pd.DataFrame()) == {}

    def test_resolve_name_fallback(self, ctx) -> None:
        table = lookup_table(ctx["dealers"])

        assert resolve_name(table, "d1", UNKNOWN_DEALER) == "Alpha Auto"
        assert resolve_name(table, "dX", UNKNOWN_DEALER) == UNKNOWN_DEALER
        assert resolve_name(table, None, UNKNOWN_DEALER) == UNKNOWN_DEALER


class TestJoins:
    def test_join_dealers_falls_back_for_unknown_ids(self, ctx) -> None:
        out = join_dealers(ctx["invoices"], ctx["dealers"])
        by_id = out.set_index("id")

        assert by_id.loc["i1", "dealer_name"] == "Alpha Auto"
        assert by_id.loc["i1", "dealer_region"] == "North"
        assert by_id.loc["i4", "dealer_name"] == UNKNOWN_DEALER
        assert pd.isna(by_id.loc["i4", "dealer_region"])
        assert len(out) == len(ctx["invoices"])

    def test_join_vendors(self, ctx) -> None:
        frame = pd.DataFrame({"vendor_id": ["v2", "missing"]})
        out = join_vendors(frame, ctx["vendors"])

        assert out["vendor_name"].tolist() == ["Shine Inc", UNKNOWN_VENDOR]
        assert out["vendor_category"].iloc[0] == "Detailing"

    def test_join_products(self, ctx) -> None:
        out = join_products(ctx["line_items"], ctx["products"])
        assert out["sku"].tolist() == ["PC-1", "PC-2", "SH-1", "PC-1"]


class TestUnknownEntityError:
    def test_message_and_kind(self) -> None:
        with pytest.raises(KeyError) as excinfo:
            raise UnknownEntityError("dealer", "d9")

        assert excinfo.value.kind == "dealer"
        assert str(excinfo.value) == "dealer 'd9' not found"
