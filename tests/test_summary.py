from __future__ import annotations

import math

import pandas as pd
import pytest

from core.summary import percent_column, safe_percent, top_n


class TestSafePercent:
    def test_regular_ratio(self) -> None:
        assert safe_percent(50, 1000) == pytest.approx(5.0)

    @pytest.mark.parametrize("whole", [0, 0.0, None, -10, math.nan])
    def test_non_positive_whole_is_zero(self, whole) -> None:
        assert safe_percent(5, whole) == 0.0


class TestPercentColumn:
    def test_zero_denominator_rows_are_zero_not_nan(self) -> None:
        out = percent_column(pd.Series([30.0, 5.0, 0.0]), pd.Series([600.0, 0.0, 0.0]))

        assert out.tolist() == [5.0, 0.0, 0.0]
        assert not out.isna().any()


class TestTopN:
    rows = [
        {"name": "a", "spend": 10.0},
        {"name": "b", "spend": 30.0},
        {"name": "c", "spend": 10.0},
        {"name": "d", "spend": 20.0},
    ]

    def test_records_by_field_name(self) -> None:
        out = top_n(self.rows, 2, "spend")
        assert [r["name"] for r in out] == ["b", "d"]

    def test_records_by_callable_keep_tie_order(self) -> None:
        out = top_n(self.rows, 4, lambda r: r["spend"])
        assert [r["name"] for r in out] == ["b", "d", "a", "c"]

    def test_returns_fewer_when_collection_is_smaller(self) -> None:
        assert len(top_n(self.rows, 10, "spend")) == 4
        assert top_n(self.rows, -1, "spend") == []

    def test_result_is_prefix_of_full_descending_sort(self) -> None:
        full = top_n(self.rows, len(self.rows), "spend")
        for n in range(len(self.rows) + 1):
            assert top_n(self.rows, n, "spend") == full[:n]

    def test_frame_by_column(self) -> None:
        df = pd.DataFrame(self.rows)
        out = top_n(df, 3, "spend")

        assert out["name"].tolist() == ["b", "d", "a"]
        assert out.index.tolist() == [0, 1, 2]

    def test_frame_rejects_callable_key(self) -> None:
        with pytest.raises(TypeError):
            top_n(pd.DataFrame(self.rows), 2, lambda r: r["spend"])
