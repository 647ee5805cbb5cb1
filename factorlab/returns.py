"""
Return Transformer

Converts aligned price levels into excess log returns:

    1. Log returns      l_t = log(P_t) - log(P_{t-1}),  t = 2..N
    2. Risk-free rate   rf_t = log(1 + r_m / 22)
                        where r_m is the published rate of the calendar
                        month containing trading date t
    3. Excess return    x_t = l_t - rf_t   (aligned by position)

The monthly rate lookup is a precomputed (year, month) -> rate table built
once from the rate series. A trading date whose month has no published rate
is fatal (MissingRate); there is no fallback rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from factorlab.config import BUSINESS_DAYS_PER_MONTH, TRADING_DAYS_YEAR
from factorlab.exceptions import LengthMismatch, MissingRate

logger = logging.getLogger(__name__)

PriceData = Union[pd.Series, pd.DataFrame]


# =============================================================================
# LOG RETURNS
# =============================================================================

def log_returns(prices: PriceData) -> PriceData:
    """
    Per-column log returns, dropping the first observation.

    Args:
        prices: Price levels (Series or DataFrame) with no missing values

    Returns:
        Log returns indexed by the price dates[1:]

    Raises:
        ValueError: on missing or non-positive prices
    """
    if prices.isna().to_numpy().any():
        raise ValueError("Prices contain missing values; align and interpolate first")
    if (prices <= 0).to_numpy().any():
        raise ValueError("Log returns require strictly positive prices")

    return np.log(prices).diff().iloc[1:]


def reconstruct_prices(returns: pd.Series, initial_price: float) -> pd.Series:
    """
    Rebuild price levels P_t = P_0 * exp(sum of l up to t).

    The result is indexed like `returns`, i.e. it holds P_1..P_N; P_0 is the
    price on the date preceding the first return.
    """
    return initial_price * np.exp(returns.cumsum())


# =============================================================================
# RISK-FREE RATE
# =============================================================================

@dataclass(frozen=True)
class MonthlyRateTable:
    """
    Immutable (year, month) -> decimal rate lookup.

    Built once from a monthly rate series; `rate_for` is a dictionary lookup
    rather than a scan over the rate series.
    """
    rates: Mapping[Tuple[int, int], float]

    @classmethod
    def from_series(cls, monthly_rates: pd.Series) -> "MonthlyRateTable":
        """
        Build the table from a rate series indexed by any date in each month.

        If a month has several observations the last one wins.
        """
        index = pd.DatetimeIndex(monthly_rates.index)
        table: Dict[Tuple[int, int], float] = {}
        for ts, value in zip(index, monthly_rates.to_numpy(dtype=float)):
            if np.isnan(value):
                continue
            key = (ts.year, ts.month)
            if key in table:
                logger.debug(f"Several rates for {key[0]:04d}-{key[1]:02d}, keeping the last")
            table[key] = float(value)
        return cls(rates=MappingProxyType(table))

    def rate_for(self, date) -> float:
        ts = pd.Timestamp(date)
        try:
            return self.rates[(ts.year, ts.month)]
        except KeyError:
            raise MissingRate(ts.year, ts.month, ts.date()) from None

    def __contains__(self, key) -> bool:
        return key in self.rates

    def __len__(self) -> int:
        return len(self.rates)


def risk_free_series(
    dates: pd.DatetimeIndex,
    table: MonthlyRateTable,
    business_days: int = BUSINESS_DAYS_PER_MONTH
) -> pd.Series:
    """
    Per-period log risk-free returns for each trading date.

    Args:
        dates: Trading dates needing a rate
        table: Monthly rate lookup
        business_days: Days a monthly rate is spread over

    Returns:
        Series of log(1 + r / business_days), one value per date

    Raises:
        MissingRate: if a date's calendar month has no published rate
    """
    dates = pd.DatetimeIndex(dates)
    values = np.empty(len(dates), dtype=float)
    for i, ts in enumerate(dates):
        values[i] = table.rate_for(ts)

    return pd.Series(np.log1p(values / business_days), index=dates, name="risk_free")


# =============================================================================
# EXCESS RETURNS
# =============================================================================

def excess_returns(returns: PriceData, risk_free: pd.Series) -> PriceData:
    """
    Subtract the risk-free series from each return column, by position.

    Raises:
        LengthMismatch: if lengths or date indexes differ
    """
    if len(returns) != len(risk_free):
        raise LengthMismatch(len(returns), len(risk_free))
    if not returns.index.equals(risk_free.index):
        raise LengthMismatch(
            len(returns), len(risk_free),
            "Return and risk-free series cover different dates"
        )

    rf = risk_free.to_numpy()
    if isinstance(returns, pd.DataFrame):
        return returns - rf[:, None]
    return returns - rf


@dataclass(frozen=True)
class ReturnSet:
    """Log returns, risk-free series and excess returns for one table."""
    log_returns: pd.DataFrame
    risk_free: pd.Series
    excess: pd.DataFrame

    @property
    def n_obs(self) -> int:
        return len(self.excess)


def compute_excess_returns(prices: pd.DataFrame, rates: MonthlyRateTable) -> ReturnSet:
    """Run the full transform: differencing, rate lookup, subtraction."""
    lr = log_returns(prices)
    rf = risk_free_series(lr.index, rates)
    excess = excess_returns(lr, rf)

    logger.info(
        f"Computed {len(excess)} excess log returns for {list(excess.columns)} "
        f"(mean daily rf {rf.mean():.6f})"
    )
    return ReturnSet(log_returns=lr, risk_free=rf, excess=excess)


# =============================================================================
# DESCRIPTIVE STATISTICS
# =============================================================================

def describe_returns(returns: pd.DataFrame) -> pd.DataFrame:
    """
    Summary statistics per return column.

    Columns: count, mean, std, ann_mean, ann_vol, skew, excess_kurtosis,
    min, max.
    """
    rows = {}
    for column in returns.columns:
        x = returns[column].dropna()
        rows[column] = {
            "count": len(x),
            "mean": x.mean(),
            "std": x.std(),
            "ann_mean": x.mean() * TRADING_DAYS_YEAR,
            "ann_vol": x.std() * np.sqrt(TRADING_DAYS_YEAR),
            "skew": float(stats.skew(x)) if len(x) > 2 else np.nan,
            "excess_kurtosis": float(stats.kurtosis(x)) if len(x) > 3 else np.nan,
            "min": x.min(),
            "max": x.max(),
        }
    return pd.DataFrame.from_dict(rows, orient="index")
