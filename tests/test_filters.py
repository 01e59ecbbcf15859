from __future__ import annotations

import dataclasses

import pytest

from core.filters import DEFAULT_RECENT_LIMIT, DEFAULT_TOP_N, DashboardFilters, normalize_filters


class TestNormalizeFilters:
    def test_defaults(self) -> None:
        f = normalize_filters({})

        assert f == DashboardFilters()
        assert f.top_n == DEFAULT_TOP_N
        assert f.recent_limit == DEFAULT_RECENT_LIMIT

    def test_none_is_treated_as_empty(self) -> None:
        assert normalize_filters(None) == DashboardFilters()  # type: ignore[arg-type]

    def test_periods_drop_all_marker_and_unknown_values(self) -> None:
        f = normalize_filters(
            {"selected_periods": ["2025-Q2", "All Periods", "2025-Q1", "bogus", "2025-Q2"]},
            available_periods=["2025-Q1", "2025-Q2"],
        )
        assert f.selected_periods == ["2025-Q1", "2025-Q2"]

    def test_single_string_and_whitespace(self) -> None:
        f = normalize_filters({"selected_regions": " North ", "selected_categories": ["", "All Categories", "Parts"]})

        assert f.selected_regions == ["North"]
        assert f.selected_categories == ["Parts"]

    @pytest.mark.parametrize(
        "raw, expected",
        [("abc", DEFAULT_TOP_N), (0, 1), (1000, 200), ("12", 12)],
    )
    def test_top_n_is_clamped(self, raw, expected) -> None:
        assert normalize_filters({"top_n": raw}).top_n == expected

    def test_recent_limit_is_clamped(self) -> None:
        assert normalize_filters({"recent_limit": 500}).recent_limit == 50

    def test_filters_are_frozen(self) -> None:
        f = normalize_filters({})
        with pytest.raises(dataclasses.FrozenInstanceError):
            f.top_n = 10  # type: ignore[misc]
