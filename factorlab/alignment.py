"""
Alignment and interpolation of heterogeneous daily series.

Stock prices trade on exchange days, FRED macro series follow their own
publication calendars. The aligner takes the first series as the reference
calendar, left-joins the others onto it and fills interior holes by linear
interpolation. Holes at either end of a column are never extrapolated.
"""

from __future__ import annotations

import logging
from typing import Dict, List

import pandas as pd

from factorlab.exceptions import IncompatibleDateRange, UnresolvedEdgeGap

logger = logging.getLogger(__name__)


def align_series(*series: pd.Series, drop_edge_gaps: bool = True) -> pd.DataFrame:
    """
    Join series onto the first series' dates and interpolate interior gaps.

    Args:
        *series: Two or more named series with DatetimeIndex. The first one
            defines the date index of the result.
        drop_edge_gaps: Drop leading/trailing rows that still hold a missing
            value after interpolation. When False such rows are an error.

    Returns:
        Date-indexed frame, one column per input series, no missing values

    Raises:
        IncompatibleDateRange: a column has no values on the reference dates,
            an input has duplicate dates, or nothing is left after dropping
            edge rows
        UnresolvedEdgeGap: an edge gap remains and drop_edge_gaps is False
    """
    if len(series) < 2:
        raise ValueError("align_series needs at least two series")

    prepared = [_prepare(s, i) for i, s in enumerate(series)]

    names = [s.name for s in prepared]
    if len(set(names)) != len(names):
        raise ValueError(f"Series names must be unique, got {names}")

    frame = prepared[0].to_frame()
    for other in prepared[1:]:
        frame = frame.join(other, how="left")

    for column in frame.columns:
        if frame[column].notna().sum() == 0:
            raise IncompatibleDateRange(column)

    filled = _count_missing(frame)
    frame = frame.interpolate(method="linear", limit_area="inside")

    for column, before in filled.items():
        if before:
            logger.debug(f"{column}: {before - int(frame[column].isna().sum())} values interpolated")

    frame = _resolve_edges(frame, drop_edge_gaps)

    logger.info(
        f"Aligned {len(frame.columns)} series on {len(frame)} dates "
        f"({frame.index[0].date()} to {frame.index[-1].date()})"
    )
    return frame


def _prepare(series: pd.Series, position: int) -> pd.Series:
    name = series.name if series.name is not None else f"series_{position}"
    series = series.rename(name)

    if not isinstance(series.index, pd.DatetimeIndex):
        series.index = pd.to_datetime(series.index)

    if series.index.has_duplicates:
        dupes = series.index[series.index.duplicated()].unique()
        raise IncompatibleDateRange(
            name, f"Column '{name}' has duplicate dates, first at {dupes[0].date()}"
        )

    return series.sort_index().astype(float)


def _count_missing(frame: pd.DataFrame) -> Dict[str, int]:
    return {column: int(frame[column].isna().sum()) for column in frame.columns}


def _resolve_edges(frame: pd.DataFrame, drop_edge_gaps: bool) -> pd.DataFrame:
    """Drop or reject rows whose gaps interpolation could not close."""
    incomplete = frame.isna().any(axis=1)
    if not incomplete.any():
        return frame

    if not drop_edge_gaps:
        column = frame.columns[frame.isna().any(axis=0)][0]
        first_gap = frame.index[frame[column].isna()][0]
        raise UnresolvedEdgeGap(column, first_gap.date())

    affected: List[str] = list(frame.columns[frame.isna().any(axis=0)])
    trimmed = frame.loc[~incomplete]
    if trimmed.empty:
        raise IncompatibleDateRange(
            affected[0], f"Columns {affected} share no dates once edge gaps are removed"
        )

    logger.warning(
        f"Dropped {int(incomplete.sum())} edge rows with unresolved gaps in {affected}"
    )
    return trimmed
