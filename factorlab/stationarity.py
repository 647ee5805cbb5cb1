"""
Stationarity testing for price and return series.

Regression on returns assumes they are stationary; price levels are expected
to carry a unit root. Two complementary tests are reported:

    ADF:  H0 = unit root (non-stationary). Drives the stationary decision.
    KPSS: H0 = level stationary. Reported as confirmation.

This module only reports. Differencing (returns.log_returns) is what makes
a price series stationary.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, List

import pandas as pd

from factorlab.config import SIGNIFICANCE_LEVEL, StationarityConclusion
from factorlab.exceptions import InsufficientObservations

logger = logging.getLogger(__name__)

# adfuller's AIC lag search needs a reasonable sample to be meaningful
MIN_OBSERVATIONS: int = 20


@dataclass(frozen=True)
class StationarityResult:
    """
    ADF and KPSS results for one series.
    """
    name: str
    n_obs: int

    # Augmented Dickey-Fuller
    adf_statistic: float
    adf_p_value: float
    adf_lags_used: int
    adf_critical_1pct: float
    adf_critical_5pct: float
    adf_critical_10pct: float

    # KPSS
    kpss_statistic: float
    kpss_p_value: float

    alpha: float = SIGNIFICANCE_LEVEL

    @property
    def is_stationary(self) -> bool:
        """ADF rejects the unit root."""
        return self.adf_p_value < self.alpha

    @property
    def is_stationary_kpss(self) -> bool:
        """KPSS fails to reject stationarity."""
        return self.kpss_p_value > self.alpha

    @property
    def conclusion(self) -> StationarityConclusion:
        """
        Combine ADF and KPSS.

        ADF rejects, KPSS does not -> Stationary
        ADF does not, KPSS rejects -> Non-stationary
        Both reject                -> Trend stationary
        Neither rejects            -> Inconclusive
        """
        if self.is_stationary and self.is_stationary_kpss:
            return StationarityConclusion.STATIONARY
        elif not self.is_stationary and not self.is_stationary_kpss:
            return StationarityConclusion.NON_STATIONARY
        elif self.is_stationary and not self.is_stationary_kpss:
            return StationarityConclusion.TREND_STATIONARY
        else:
            return StationarityConclusion.INCONCLUSIVE

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "n_obs": self.n_obs,
            "adf_statistic": self.adf_statistic,
            "adf_p_value": self.adf_p_value,
            "adf_lags_used": self.adf_lags_used,
            "kpss_statistic": self.kpss_statistic,
            "kpss_p_value": self.kpss_p_value,
            "is_stationary": self.is_stationary,
            "conclusion": self.conclusion.value,
        }


def check_stationarity(series: pd.Series, alpha: float = SIGNIFICANCE_LEVEL) -> StationarityResult:
    """
    Run ADF (AIC lag selection) and KPSS (constant) on a series.

    Args:
        series: Numeric series; missing values are dropped
        alpha: Significance level for the decisions

    Returns:
        StationarityResult

    Raises:
        InsufficientObservations: fewer than MIN_OBSERVATIONS values
    """
    from statsmodels.tsa.stattools import adfuller, kpss

    clean = pd.Series(series).dropna()
    n = len(clean)
    if n < MIN_OBSERVATIONS:
        raise InsufficientObservations(
            n, MIN_OBSERVATIONS,
            f"Stationarity test needs at least {MIN_OBSERVATIONS} observations, got {n}"
        )

    adf_stat, adf_pval, adf_lags, _, adf_crit, _ = adfuller(clean, autolag='AIC')

    # KPSS warns when the statistic falls outside its p-value lookup table
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        kpss_stat, kpss_pval, _, _ = kpss(clean, regression='c', nlags='auto')

    result = StationarityResult(
        name=str(series.name) if series.name is not None else "series",
        n_obs=n,
        adf_statistic=float(adf_stat),
        adf_p_value=float(adf_pval),
        adf_lags_used=int(adf_lags),
        adf_critical_1pct=float(adf_crit['1%']),
        adf_critical_5pct=float(adf_crit['5%']),
        adf_critical_10pct=float(adf_crit['10%']),
        kpss_statistic=float(kpss_stat),
        kpss_p_value=float(kpss_pval),
        alpha=alpha,
    )

    logger.debug(
        f"{result.name}: ADF={result.adf_statistic:.3f} (p={result.adf_p_value:.4f}), "
        f"KPSS p={result.kpss_p_value:.3f} -> {result.conclusion.value}"
    )
    return result


def check_columns(frame: pd.DataFrame, alpha: float = SIGNIFICANCE_LEVEL) -> Dict[str, StationarityResult]:
    """Test every column of a frame."""
    return {column: check_stationarity(frame[column], alpha) for column in frame.columns}


def require_stationary(results: Dict[str, StationarityResult]) -> List[str]:
    """
    Log a warning for each series that fails the ADF test.

    Returns:
        Names of the non-stationary series (empty when all pass)
    """
    failing = [name for name, result in results.items() if not result.is_stationary]
    for name in failing:
        result = results[name]
        logger.warning(
            f"{name} is not stationary (ADF p={result.adf_p_value:.3f}); "
            f"regression inference on it may be spurious"
        )
    return failing
