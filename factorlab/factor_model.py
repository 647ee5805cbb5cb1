"""
================================================================================
FACTOR MODEL FITTER
================================================================================

Ordinary least squares factor models on excess log returns:

    CAPM (single factor)
        r_stock - rf = alpha + beta * (r_market - rf) + e

    APT (multi-factor)
        r_stock - rf = alpha + b_m (r_market - rf)
                             + b_o (r_oil - rf)
                             + b_fx (r_fx - rf) + e

Both specifications produce the same immutable FactorModel value, which is
passed explicitly to the diagnostics engine.

Academic References:
-------------------
- Sharpe (1964): "Capital Asset Prices"
- Jensen (1968): "The Performance of Mutual Funds"
- Ross (1976): "The Arbitrage Theory of Capital Asset Pricing"
- Chen, Roll & Ross (1986): "Economic Forces and the Stock Market"
================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple, Union

import pandas as pd
import statsmodels.api as sm

from factorlab.config import SIGNIFICANCE_LEVEL, TRADING_DAYS_YEAR, ModelSpecification
from factorlab.exceptions import InsufficientObservations, LengthMismatch

logger = logging.getLogger(__name__)

CONSTANT: str = "const"

Factors = Union[pd.Series, pd.DataFrame, Sequence[pd.Series]]


# =============================================================================
# FITTED MODEL
# =============================================================================

@dataclass(frozen=True)
class FactorModel:
    """
    Fitted OLS factor model.

    Attributes
    ----------
    specification : str
        Model label (CAPM, APT, or a custom name)
    dependent : str
        Name of the dependent excess-return series
    factors : tuple of str
        Regressor names, excluding the constant
    params, bse, tvalues, pvalues : pd.Series
        Coefficients, standard errors, t-statistics and two-sided p-values,
        indexed by 'const' followed by the factor names
    rsquared, rsquared_adj : float
        Coefficient of determination and its degrees-of-freedom adjustment
    resid, fitted : pd.Series
        Residuals and fitted values on the estimation dates
    endog : pd.Series
        Dependent series used in the fit
    exog : pd.DataFrame
        Design matrix including the constant column
    cov_type : str
        Covariance estimator behind bse / tvalues / pvalues
    """
    specification: str
    dependent: str
    factors: Tuple[str, ...]
    params: pd.Series
    bse: pd.Series
    tvalues: pd.Series
    pvalues: pd.Series
    rsquared: float
    rsquared_adj: float
    resid: pd.Series
    fitted: pd.Series
    endog: pd.Series
    exog: pd.DataFrame
    cov_type: str = "nonrobust"
    results: Any = field(default=None, repr=False, compare=False)

    @property
    def alpha(self) -> float:
        """Intercept (daily Jensen's alpha)."""
        return float(self.params[CONSTANT])

    @property
    def alpha_annualized(self) -> float:
        return self.alpha * TRADING_DAYS_YEAR

    @property
    def alpha_significant(self) -> bool:
        """Is alpha statistically significant at 5% level?"""
        return bool(self.pvalues[CONSTANT] < SIGNIFICANCE_LEVEL)

    @property
    def betas(self) -> pd.Series:
        """Factor loadings, without the intercept."""
        return self.params.drop(CONSTANT)

    @property
    def n_obs(self) -> int:
        return len(self.endog)

    @property
    def n_predictors(self) -> int:
        return len(self.factors)

    @property
    def n_params(self) -> int:
        return self.n_predictors + 1

    @property
    def df_resid(self) -> int:
        return self.n_obs - self.n_params

    def summary_frame(self) -> pd.DataFrame:
        """Coefficient table: coef, std_err, t, p_value."""
        return pd.DataFrame({
            "coef": self.params,
            "std_err": self.bse,
            "t": self.tvalues,
            "p_value": self.pvalues,
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "specification": self.specification,
            "dependent": self.dependent,
            "factors": list(self.factors),
            "n_obs": self.n_obs,
            "cov_type": self.cov_type,
            "alpha": self.alpha,
            "alpha_annualized": self.alpha_annualized,
            "betas": {k: float(v) for k, v in self.betas.items()},
            "r_squared": self.rsquared,
            "adj_r_squared": self.rsquared_adj,
            "coefficients": {
                name: {key: float(value) for key, value in row.items()}
                for name, row in self.summary_frame().iterrows()
            },
        }


# =============================================================================
# FITTING
# =============================================================================

def fit_factor_model(
    dependent: pd.Series,
    factors: Factors,
    specification: str = "custom",
    cov_type: str = "nonrobust"
) -> FactorModel:
    """
    Fit dependent = alpha + sum(beta_i * factor_i) + e by OLS.

    Args:
        dependent: Dependent excess-return series
        factors: One or more regressor series of the same length and dates
        specification: Label stored on the fitted model
        cov_type: 'nonrobust' or a heteroscedasticity-robust estimator
            ('HC0', 'HC1', 'HC2', 'HC3')

    Returns:
        FactorModel

    Raises:
        LengthMismatch: regressors and dependent differ in length or dates
        InsufficientObservations: observations <= parameters
        ValueError: missing values or no regressors
    """
    X = _factor_frame(factors, dependent)
    y = dependent.astype(float)
    if y.name is None:
        y = y.rename("dependent")

    if X.shape[1] == 0:
        raise ValueError("At least one factor is required")
    if y.isna().any() or X.isna().to_numpy().any():
        raise ValueError("Missing values in model inputs; the fitter does not drop rows")

    n_obs, n_params = len(y), X.shape[1] + 1
    if n_obs <= n_params:
        raise InsufficientObservations(n_obs, n_params)

    exog = sm.add_constant(X, has_constant='add')
    results = sm.OLS(y, exog).fit(cov_type=cov_type)

    model = FactorModel(
        specification=specification,
        dependent=str(y.name),
        factors=tuple(str(c) for c in X.columns),
        params=results.params,
        bse=results.bse,
        tvalues=results.tvalues,
        pvalues=results.pvalues,
        rsquared=float(results.rsquared),
        rsquared_adj=float(results.rsquared_adj),
        resid=results.resid,
        fitted=results.fittedvalues,
        endog=y,
        exog=exog,
        cov_type=cov_type,
        results=results,
    )

    logger.info(
        f"{specification}: {model.dependent} on {list(model.factors)}, "
        f"n={n_obs}, R2={model.rsquared:.4f}, alpha={model.alpha:.6f}"
    )
    return model


def fit_capm(stock: pd.Series, market: pd.Series, cov_type: str = "nonrobust") -> FactorModel:
    """Single-factor model of stock excess returns on market excess returns."""
    return fit_factor_model(stock, market, ModelSpecification.CAPM.value, cov_type)


def fit_apt(stock: pd.Series, factors: pd.DataFrame, cov_type: str = "nonrobust") -> FactorModel:
    """Multi-factor model of stock excess returns on market and macro factors."""
    return fit_factor_model(stock, factors, ModelSpecification.APT.value, cov_type)


def _factor_frame(factors: Factors, dependent: pd.Series) -> pd.DataFrame:
    """Normalize regressors to a DataFrame and check alignment with the dependent."""
    if isinstance(factors, pd.Series):
        parts = [factors]
    elif isinstance(factors, pd.DataFrame):
        parts = [factors[c] for c in factors.columns]
    else:
        parts = list(factors)

    for i, part in enumerate(parts):
        if len(part) != len(dependent):
            raise LengthMismatch(len(dependent), len(part))
        if not part.index.equals(dependent.index):
            raise LengthMismatch(
                len(dependent), len(part),
                f"Factor '{part.name if part.name is not None else i}' covers different "
                f"dates than the dependent series"
            )

    if not parts:
        return pd.DataFrame(index=dependent.index)

    frame = pd.concat(
        [p.rename(p.name if p.name is not None else f"factor_{i}") for i, p in enumerate(parts)],
        axis=1,
    )
    return frame.astype(float)
