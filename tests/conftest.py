"""Shared fixtures: synthetic prices and an offline data source."""

from __future__ import annotations

from typing import Dict

import numpy as np
import pandas as pd
import pytest

from factorlab.config import DATA

# Known relationship between stock and market daily log returns
TRUE_ALPHA = 0.0002
TRUE_BETA = 1.5


def prices_from_returns(returns: np.ndarray, start_price: float, index: pd.DatetimeIndex, name: str) -> pd.Series:
    """Price path whose log returns are exactly `returns` (first price = start_price)."""
    path = start_price * np.exp(np.concatenate([[0.0], np.cumsum(returns)]))
    return pd.Series(path, index=index, name=name)


class SyntheticSource:
    """In-memory DataSource keyed by ticker / FRED id."""

    price_source = "synthetic"
    macro_source = "synthetic"

    def __init__(self, series: Dict[str, pd.Series], monthly_rate: pd.Series):
        self.series = series
        self.monthly_rate = monthly_rate

    def fetch_adjusted_close(self, symbol: str, start: str, end: str) -> pd.Series:
        return self.series[symbol]

    def fetch_fred_series(self, series_id: str, start: str, end: str) -> pd.Series:
        return self.series[series_id]

    def fetch_monthly_rate(self, series_id: str, start: str, end: str) -> pd.Series:
        return self.monthly_rate


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def trading_dates() -> pd.DatetimeIndex:
    """100 business days starting 2021-01-04."""
    return pd.bdate_range("2021-01-04", periods=100)


@pytest.fixture
def zero_rates() -> pd.Series:
    """Zero monthly rate for every month of 2021."""
    return pd.Series(0.0, index=pd.date_range("2021-01-01", periods=12, freq="MS"), name="TB3MS")


@pytest.fixture
def synthetic_series(rng, trading_dates) -> Dict[str, pd.Series]:
    """Stock, market, oil and FX levels keyed by the default config ids."""
    n = len(trading_dates) - 1
    market_ret = rng.normal(0.0005, 0.01, n)
    stock_ret = TRUE_ALPHA + TRUE_BETA * market_ret + rng.normal(0.0, 0.001, n)
    oil_ret = rng.normal(0.0, 0.02, n)
    fx_ret = rng.normal(0.0, 0.005, n)

    oil = prices_from_returns(oil_ret, 60.0, trading_dates, DATA.oil_series)
    # FRED holidays: a few missing interior observations
    oil = oil.drop(oil.index[[10, 11, 50]])

    return {
        DATA.stock_symbol: prices_from_returns(stock_ret, 220.0, trading_dates, DATA.stock_symbol),
        DATA.market_symbol: prices_from_returns(market_ret, 3700.0, trading_dates, DATA.market_symbol),
        DATA.oil_series: oil,
        DATA.fx_series: prices_from_returns(fx_ret, 1.2, trading_dates, DATA.fx_series),
    }


@pytest.fixture
def synthetic_source(synthetic_series, zero_rates) -> SyntheticSource:
    return SyntheticSource(synthetic_series, zero_rates)
