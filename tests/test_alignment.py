"""Tests for joining and interpolating series onto a reference calendar."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
import pytest

from factorlab.alignment import align_series
from factorlab.exceptions import IncompatibleDateRange, UnresolvedEdgeGap


@pytest.fixture
def dates() -> pd.DatetimeIndex:
    return pd.bdate_range("2022-03-01", periods=5)


@pytest.fixture
def left(dates) -> pd.Series:
    return pd.Series([1.0, 2.0, 3.0, 4.0, 5.0], index=dates, name="stock")


class TestInterpolation:
    def test_interior_gaps_filled_linearly(self, left, dates):
        right = pd.Series([10.0, 30.0, 50.0], index=dates[[0, 2, 4]], name="oil")

        table = align_series(left, right)

        assert list(table.columns) == ["stock", "oil"]
        assert table.index.equals(dates)
        assert table["oil"].tolist() == pytest.approx([10.0, 20.0, 30.0, 40.0, 50.0])

    def test_index_follows_left_series(self, left, dates):
        extra = dates.union(pd.DatetimeIndex(["2022-03-05", "2022-03-06"]))
        right = pd.Series(np.arange(len(extra), dtype=float), index=extra, name="fx")

        table = align_series(left, right)

        assert table.index.equals(dates)

    def test_unsorted_input_is_sorted(self, left, dates):
        right = pd.Series([5.0, 4.0, 3.0, 2.0, 1.0], index=dates[::-1], name="fx")

        table = align_series(left, right)

        assert table["fx"].tolist() == [1.0, 2.0, 3.0, 4.0, 5.0]

    @pytest.mark.parametrize("seed", range(5))
    def test_no_missing_values_without_edge_gaps(self, seed):
        rng = np.random.default_rng(seed)
        dates = pd.bdate_range("2020-01-01", periods=60)
        left = pd.Series(rng.uniform(50, 150, 60), index=dates, name="stock")

        keep = np.ones(60, dtype=bool)
        keep[rng.choice(np.arange(1, 59), size=15, replace=False)] = False
        right = pd.Series(rng.uniform(1, 2, 60), index=dates, name="oil")[keep]
        third = pd.Series(rng.uniform(1, 2, 60), index=dates, name="fx")[keep[::-1]]

        table = align_series(left, right, third)

        assert table.notna().all().all()
        assert table.index.equals(dates)


class TestEdgeGaps:
    def test_leading_gap_rows_dropped(self, left, dates, caplog):
        right = pd.Series([30.0, 40.0, 50.0], index=dates[2:], name="oil")

        with caplog.at_level(logging.WARNING, logger="factorlab.alignment"):
            table = align_series(left, right)

        assert table.index.equals(dates[2:])
        assert table.notna().all().all()
        assert "oil" in caplog.text

    def test_trailing_gap_rows_dropped(self, left, dates):
        right = pd.Series([10.0, 20.0, 30.0], index=dates[:3], name="oil")

        table = align_series(left, right)

        assert table.index.equals(dates[:3])

    def test_strict_mode_raises_with_column_and_date(self, left, dates):
        right = pd.Series([30.0, 40.0, 50.0], index=dates[2:], name="oil")

        with pytest.raises(UnresolvedEdgeGap) as exc_info:
            align_series(left, right, drop_edge_gaps=False)

        assert exc_info.value.column == "oil"
        assert exc_info.value.date == dates[0].date()
        assert isinstance(exc_info.value, IncompatibleDateRange)


class TestIncompatibleInputs:
    def test_column_without_overlap(self, left):
        later = pd.bdate_range("2023-01-02", periods=5)
        right = pd.Series(np.ones(5), index=later, name="oil")

        with pytest.raises(IncompatibleDateRange) as exc_info:
            align_series(left, right)

        assert exc_info.value.column == "oil"

    def test_duplicate_dates(self, left, dates):
        right = pd.Series([1.0, 2.0, 3.0], index=dates[[0, 0, 1]], name="fx")

        with pytest.raises(IncompatibleDateRange, match="duplicate"):
            align_series(left, right)

    def test_disjoint_edge_coverage_leaves_nothing(self, left, dates):
        early = pd.Series([1.0, 2.0], index=dates[:2], name="oil")
        late = pd.Series([1.0, 2.0], index=dates[3:], name="fx")

        with pytest.raises(IncompatibleDateRange):
            align_series(left, early, late)

    def test_requires_two_series(self, left):
        with pytest.raises(ValueError):
            align_series(left)

    def test_names_must_be_unique(self, left):
        with pytest.raises(ValueError):
            align_series(left, left.copy())
