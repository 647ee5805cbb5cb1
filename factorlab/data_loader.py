"""
Time-Series Loader

Acquires the raw inputs of the factor model pipeline:

    Yahoo Finance (yfinance)
        Daily adjusted closing prices for the stock and the market index.

    FRED (pandas_datareader)
        - Monthly risk-free rate proxy (published in percent, converted to
          a decimal rate)
        - Daily crude oil price
        - Daily FX rate

Each fetch is a single attempt. Any failure or empty result raises
SourceUnavailable and aborts the run; there is no retry or failover.

Every fetched series is recorded with a DataProvenance entry (source,
fetch timestamp, record count, value hash) so that a run can be traced
back to the exact data it used.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple

import pandas as pd

from factorlab.config import DATA, PIPELINE_VERSION, DataConfig
from factorlab.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)


YAHOO_SOURCE: str = "yahoo_finance"
FRED_SOURCE: str = "fred"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class DataProvenance:
    """
    Tracks the origin of one fetched series for auditability.
    """
    source: str                     # Data source identifier
    symbol: str                     # Ticker or FRED series id
    fetch_timestamp: str            # ISO format timestamp
    date_range: Tuple[str, str]     # Requested (start, end)
    record_count: int               # Number of observations returned
    data_hash: str                  # Truncated SHA-256 of the values
    version: str = PIPELINE_VERSION

    @classmethod
    def from_series(
        cls,
        series: pd.Series,
        source: str,
        symbol: str,
        start: str,
        end: str
    ) -> "DataProvenance":
        data_hash = hashlib.sha256(
            pd.util.hash_pandas_object(series).values.tobytes()
        ).hexdigest()[:16]
        return cls(
            source=source,
            symbol=symbol,
            fetch_timestamp=datetime.now().isoformat(),
            date_range=(start, end),
            record_count=len(series),
            data_hash=data_hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source": self.source,
            "symbol": self.symbol,
            "fetch_timestamp": self.fetch_timestamp,
            "date_range": list(self.date_range),
            "record_count": self.record_count,
            "data_hash": self.data_hash,
            "version": self.version,
        }


@dataclass(frozen=True)
class LoadedData:
    """Raw series handed from the loader to the aligner."""
    stock: pd.Series
    market: pd.Series
    oil: pd.Series
    fx: pd.Series
    monthly_rate: pd.Series         # Decimal rate indexed by month start
    provenance: List[DataProvenance] = field(default_factory=list)


# =============================================================================
# DATA SOURCE CONTRACT
# =============================================================================

class DataSource(Protocol):
    """Collaborator contract for anything that can supply raw series."""

    def fetch_adjusted_close(self, symbol: str, start: str, end: str) -> pd.Series:
        ...

    def fetch_fred_series(self, series_id: str, start: str, end: str) -> pd.Series:
        ...

    def fetch_monthly_rate(self, series_id: str, start: str, end: str) -> pd.Series:
        ...


# =============================================================================
# MARKET DATA LOADER
# =============================================================================

class MarketDataLoader:
    """
    Yahoo Finance and FRED backed implementation of DataSource.

    Both client libraries are imported lazily so that the analytical core can
    be used (and tested) without network dependencies being importable.
    """

    price_source = YAHOO_SOURCE
    macro_source = FRED_SOURCE

    def __init__(self, timeout: int = 30):
        """
        Initialize the loader.

        Args:
            timeout: Request timeout in seconds for Yahoo Finance
        """
        self._yf = None
        self._pdr = None
        self.timeout = timeout

    def _get_yf(self):
        """Lazy load yfinance to avoid import overhead."""
        if self._yf is None:
            import yfinance as yf
            self._yf = yf
        return self._yf

    def _get_pdr(self):
        """Lazy load pandas_datareader."""
        if self._pdr is None:
            from pandas_datareader import data as pdr
            self._pdr = pdr
        return self._pdr

    def fetch_adjusted_close(self, symbol: str, start: str, end: str) -> pd.Series:
        """
        Fetch daily adjusted closing prices for one ticker.

        Args:
            symbol: Ticker symbol
            start: Start date (YYYY-MM-DD)
            end: End date (YYYY-MM-DD)

        Returns:
            Series of adjusted closes named by the symbol

        Raises:
            SourceUnavailable: if the download fails or returns no rows
        """
        yf = self._get_yf()
        logger.info(f"Fetching adjusted close: {symbol} ({start} to {end})")

        try:
            data = yf.download(
                symbol,
                start=start,
                end=end,
                auto_adjust=False,
                progress=False,
                timeout=self.timeout,
            )
        except Exception as e:
            raise SourceUnavailable(symbol, str(e)) from e

        if data is None or len(data) == 0:
            raise SourceUnavailable(symbol, "no rows returned")

        if isinstance(data.columns, pd.MultiIndex):
            data.columns = data.columns.get_level_values(0)

        column = "Adj Close" if "Adj Close" in data.columns else "Close"
        if column not in data.columns:
            raise SourceUnavailable(symbol, f"no close column in {list(data.columns)}")

        series = _normalize_series(data[column], symbol)
        if len(series) == 0:
            raise SourceUnavailable(symbol, "all values missing")

        logger.debug(f"{symbol}: {len(series)} observations ({column})")
        return series

    def fetch_fred_series(self, series_id: str, start: str, end: str) -> pd.Series:
        """
        Fetch one FRED series as published.

        Args:
            series_id: FRED series identifier (e.g. 'DCOILWTICO')
            start: Start date (YYYY-MM-DD)
            end: End date (YYYY-MM-DD)

        Returns:
            Series named by the FRED id

        Raises:
            SourceUnavailable: if the request fails or returns no values
        """
        pdr = self._get_pdr()
        logger.info(f"Fetching FRED series: {series_id} ({start} to {end})")

        try:
            frame = pdr.DataReader(series_id, "fred", start, end)
        except Exception as e:
            raise SourceUnavailable(series_id, str(e)) from e

        if frame is None or len(frame) == 0:
            raise SourceUnavailable(series_id, "no rows returned")

        raw = frame.squeeze(axis=1) if isinstance(frame, pd.DataFrame) else frame
        series = _normalize_series(raw, series_id)
        if len(series) == 0:
            raise SourceUnavailable(series_id, "all values missing")

        logger.debug(f"{series_id}: {len(series)} observations")
        return series

    def fetch_monthly_rate(self, series_id: str, start: str, end: str) -> pd.Series:
        """
        Fetch a monthly FRED rate published in percent, as a decimal rate.

        FRED dates monthly observations on the first of the month, so the
        request starts at the beginning of the month containing `start`.
        """
        month_start = pd.Timestamp(start).to_period("M").start_time.strftime("%Y-%m-%d")
        return self.fetch_fred_series(series_id, month_start, end) / 100.0


def _normalize_series(series: pd.Series, name: str) -> pd.Series:
    """Timezone-naive DatetimeIndex, float values, no missing rows, sorted."""
    series = series.copy()

    if hasattr(series.index, 'tz') and series.index.tz is not None:
        series.index = series.index.tz_localize(None)

    if not isinstance(series.index, pd.DatetimeIndex):
        series.index = pd.to_datetime(series.index)

    series = pd.to_numeric(series, errors='coerce').dropna().astype(float)
    series = series[~series.index.duplicated(keep='last')].sort_index()
    series.name = name
    return series


def _mask_non_positive(series: pd.Series, column: str) -> pd.Series:
    """
    Rename a level series and set non-positive prints to NaN.

    Log returns are undefined for such levels (e.g. WTI spot settled at
    -36.98 on 2020-04-20). Masked values are interpolated by the aligner
    like any other missing observation.
    """
    series = series.rename(column)
    bad = series <= 0
    if bad.any():
        dates = [str(ts.date()) for ts in series.index[bad]]
        logger.warning(
            f"{column}: {len(dates)} non-positive value(s) treated as missing on {dates}"
        )
        series = series.mask(bad)
    return series


# =============================================================================
# LOADING
# =============================================================================

def load_data(source: DataSource, config: DataConfig = DATA) -> LoadedData:
    """
    Fetch every series the pipeline needs from a data source.

    Args:
        source: Any DataSource implementation
        config: Instruments and observation window

    Returns:
        LoadedData bundle with one provenance record per series
    """
    start, end = config.date_range
    price_source = getattr(source, "price_source", YAHOO_SOURCE)
    macro_source = getattr(source, "macro_source", FRED_SOURCE)

    stock = source.fetch_adjusted_close(config.stock_symbol, start, end)
    market = source.fetch_adjusted_close(config.market_symbol, start, end)
    oil = source.fetch_fred_series(config.oil_series, start, end)
    fx = source.fetch_fred_series(config.fx_series, start, end)
    rate = source.fetch_monthly_rate(config.rate_series, start, end)

    fetched = [
        (stock, price_source, config.stock_symbol),
        (market, price_source, config.market_symbol),
        (oil, macro_source, config.oil_series),
        (fx, macro_source, config.fx_series),
        (rate, macro_source, config.rate_series),
    ]
    provenance = [
        DataProvenance.from_series(series, src, symbol, start, end)
        for series, src, symbol in fetched
    ]

    logger.info(
        f"Loaded {len(stock)} {config.stock_symbol} and {len(market)} "
        f"{config.market_symbol} prices, {len(rate)} monthly rates"
    )

    return LoadedData(
        stock=_mask_non_positive(stock, config.stock_column),
        market=_mask_non_positive(market, config.market_column),
        oil=_mask_non_positive(oil, config.oil_column),
        fx=_mask_non_positive(fx, config.fx_column),
        monthly_rate=rate,
        provenance=provenance,
    )


def fetch_all(config: DataConfig = DATA, loader: Optional[MarketDataLoader] = None) -> LoadedData:
    """Load every series from Yahoo Finance and FRED."""
    return load_data(loader or MarketDataLoader(), config)
