"""
Error taxonomy for the factor model pipeline.

Every error is terminal for the run in which it occurs: nothing inside the
package catches these. The command-line runner reports the error kind and
exits non-zero.
"""

from __future__ import annotations

from typing import Optional


class FactorLabError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailable(FactorLabError):
    """Raised when a data source returns nothing or fails.

    Attributes:
        series: Ticker or FRED series id that could not be fetched.
    """

    def __init__(self, series: str, reason: str = "") -> None:
        self.series = series
        message = f"Data source unavailable for {series}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class IncompatibleDateRange(FactorLabError):
    """Raised when a joined column has no known values on the left series' dates.

    Attributes:
        column: Name of the offending column.
    """

    def __init__(self, column: str, message: str = "") -> None:
        self.column = column
        super().__init__(
            message or f"Column '{column}' has no observations in the aligned date range"
        )


class UnresolvedEdgeGap(IncompatibleDateRange):
    """Raised when a leading or trailing gap cannot be interpolated.

    Attributes:
        column: Column holding the gap.
        date: First date of the unresolved gap.
    """

    def __init__(self, column: str, date) -> None:
        self.date = date
        super().__init__(
            column,
            f"Column '{column}' has no value at {date} and cannot be interpolated "
            f"(gap at the start or end of the series)",
        )


class MissingRate(FactorLabError):
    """Raised when no monthly rate is published for a trading date's month.

    Attributes:
        year: Calendar year of the missing month.
        month: Calendar month (1-12).
        date: Trading date that needed the rate, if known.
    """

    def __init__(self, year: int, month: int, date=None) -> None:
        self.year = year
        self.month = month
        self.date = date
        message = f"No risk-free rate published for {year:04d}-{month:02d}"
        if date is not None:
            message = f"{message} (needed for {date})"
        super().__init__(message)


class LengthMismatch(FactorLabError):
    """Raised when series that must be position-aligned are not.

    Attributes:
        left: Length of the first series.
        right: Length of the second series.
    """

    def __init__(self, left: int, right: int, message: str = "") -> None:
        self.left = left
        self.right = right
        super().__init__(
            message or f"Series are misaligned: {left} vs {right} observations"
        )


class InsufficientObservations(FactorLabError):
    """Raised when there are too few observations for the requested computation.

    Attributes:
        n_obs: Number of observations supplied.
        n_params: Number of parameters (or minimum observations) required.
    """

    def __init__(self, n_obs: int, n_params: int, message: Optional[str] = None) -> None:
        self.n_obs = n_obs
        self.n_params = n_params
        super().__init__(
            message or f"{n_obs} observations cannot identify {n_params} parameters"
        )
