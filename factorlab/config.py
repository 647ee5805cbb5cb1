"""
Configuration Module for the Factor Model Research Pipeline

This module centralizes the constants, data-source identifiers, column labels
and diagnostic thresholds used throughout the CAPM / APT pipeline.

All "magic numbers" live here so that:
1. Every assumption (e.g. 22 business days per month) is visible in one place
2. Analysis code never hard-codes tickers or FRED series ids
3. Thresholds for leverage and influence flags can be changed without
   touching the diagnostics engine
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


# =============================================================================
# CALENDAR & STATISTICAL CONSTANTS
# =============================================================================

# Monthly rates are spread over a fixed number of business days. This is an
# approximation: actual trading-day counts per month vary between 19 and 23.
BUSINESS_DAYS_PER_MONTH: int = 22

TRADING_DAYS_YEAR: int = 252

# Significance level for every hypothesis test in the pipeline
SIGNIFICANCE_LEVEL: float = 0.05

PIPELINE_VERSION: str = "1.0.0"


# =============================================================================
# ENUMERATIONS
# =============================================================================

class StationarityConclusion(Enum):
    """Combined conclusion from ADF and KPSS tests."""
    STATIONARY = "STATIONARY"
    NON_STATIONARY = "NON_STATIONARY"
    TREND_STATIONARY = "TREND_STATIONARY"
    INCONCLUSIVE = "INCONCLUSIVE"


class ModelSpecification(Enum):
    """Factor model specifications fitted by the pipeline."""
    CAPM = "CAPM"
    APT = "APT"


class PipelineStage(Enum):
    """Enumeration of pipeline stages, in execution order."""
    ACQUIRE = "Data Acquisition"
    ALIGN = "Alignment & Interpolation"
    TRANSFORM = "Excess Return Computation"
    TEST = "Stationarity Testing"
    FIT = "Factor Model Fitting"
    DIAGNOSE = "Regression Diagnostics"


# =============================================================================
# DATA CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class DataConfig:
    """Instruments, macro series and observation window."""

    # Yahoo Finance tickers
    stock_symbol: str = "MSFT"
    market_symbol: str = "^GSPC"

    # Observation window (YYYY-MM-DD)
    start: str = "2010-01-01"
    end: str = "2023-01-01"

    # FRED series ids
    rate_series: str = "TB3MS"        # 3-month T-bill, monthly, percent
    oil_series: str = "DCOILWTICO"    # WTI crude, daily, USD/bbl
    fx_series: str = "DEXUSEU"        # USD per EUR, daily

    # Column labels used in the aligned price table
    stock_column: str = "stock"
    market_column: str = "market"
    oil_column: str = "oil"
    fx_column: str = "fx"

    @property
    def date_range(self) -> Tuple[str, str]:
        return (self.start, self.end)

    @property
    def price_columns(self) -> Tuple[str, ...]:
        """Aligned table columns, left (join-defining) series first."""
        return (self.stock_column, self.market_column, self.oil_column, self.fx_column)

    @property
    def factor_columns(self) -> Tuple[str, ...]:
        """Regressors of the multi-factor model."""
        return (self.market_column, self.oil_column, self.fx_column)


# =============================================================================
# DIAGNOSTIC THRESHOLDS
# =============================================================================

@dataclass(frozen=True)
class DiagnosticThresholds:
    """Decision rules for post-fit diagnostics."""

    alpha: float = SIGNIFICANCE_LEVEL

    # High leverage: h_i > leverage_multiplier * (p + 1) / n
    leverage_multiplier: float = 2.0

    # Influential: D_i > cooks_numerator / n
    cooks_numerator: float = 4.0

    # Breusch-Godfrey lag order
    autocorrelation_lags: int = 1

    # VIF above this suggests problematic collinearity
    vif_warning: float = 10.0

    def leverage_cutoff(self, n_predictors: int, n_obs: int) -> float:
        return self.leverage_multiplier * (n_predictors + 1) / n_obs

    def cooks_cutoff(self, n_obs: int) -> float:
        return self.cooks_numerator / n_obs


# =============================================================================
# GLOBAL CONFIGURATION INSTANCES
# =============================================================================

DATA = DataConfig()
THRESHOLDS = DiagnosticThresholds()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def describe_config(config: DataConfig = DATA) -> Dict[str, str]:
    """
    Flatten a DataConfig into labelled strings for console and JSON output.

    Args:
        config: Data configuration to describe

    Returns:
        Dictionary mapping human-readable labels to values
    """
    return {
        "Stock": config.stock_symbol,
        "Market": config.market_symbol,
        "Period": f"{config.start} to {config.end}",
        "Risk-free rate": config.rate_series,
        "Oil": config.oil_series,
        "FX": config.fx_series,
    }
