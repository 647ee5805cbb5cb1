"""
Regression Diagnostics Engine

Read-only post-fit inspection of a FactorModel:

    Residual tests
        - Breusch-Pagan: heteroscedasticity (score test on the regressors)
        - Breusch-Godfrey: lag-1 residual autocorrelation
        - Jarque-Bera: residual normality from skewness and kurtosis
        - Durbin-Watson statistic

    Influence analysis
        - Hat values (leverage), flagged above 2 (p + 1) / n
        - Cook's distance, flagged above 4 / n
        - Externally studentized residuals and a Bonferroni outlier test
          on the most extreme observation

    Collinearity
        - Variance inflation factors for multi-factor models

Nothing here mutates the model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_breusch_godfrey, het_breuschpagan
from statsmodels.stats.outliers_influence import OLSInfluence, variance_inflation_factor
from statsmodels.stats.stattools import durbin_watson, jarque_bera

from factorlab.config import SIGNIFICANCE_LEVEL, THRESHOLDS, DiagnosticThresholds
from factorlab.exceptions import InsufficientObservations
from factorlab.factor_model import CONSTANT, FactorModel

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class HypothesisTest:
    """Statistic and p-value of one residual test."""
    name: str
    statistic: float
    p_value: float
    null_hypothesis: str
    alpha: float = SIGNIFICANCE_LEVEL

    @property
    def rejects_null(self) -> bool:
        return bool(self.p_value < self.alpha)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "statistic": self.statistic,
            "p_value": self.p_value,
            "null_hypothesis": self.null_hypothesis,
            "rejects_null": self.rejects_null,
        }


@dataclass(frozen=True)
class InfluenceReport:
    """
    Per-observation influence measures and threshold flags.

    Attributes
    ----------
    table : pd.DataFrame
        Indexed like the model residuals, columns: hat, cooks_distance,
        student_resid, high_leverage, influential
    leverage_cutoff : float
        2 (p + 1) / n
    cooks_cutoff : float
        4 / n
    outlier_label : Any
        Index label of the largest absolute studentized residual
    outlier_student_resid : float
        Its externally studentized residual
    outlier_p_value : float
        Unadjusted two-sided p-value
    outlier_bonferroni_p : float
        p-value after Bonferroni correction across n comparisons
    """
    table: pd.DataFrame
    leverage_cutoff: float
    cooks_cutoff: float
    outlier_label: Any
    outlier_student_resid: float
    outlier_p_value: float
    outlier_bonferroni_p: float
    alpha: float = SIGNIFICANCE_LEVEL

    @property
    def hat_values(self) -> pd.Series:
        return self.table["hat"]

    @property
    def cooks_distance(self) -> pd.Series:
        return self.table["cooks_distance"]

    @property
    def high_leverage(self) -> pd.Index:
        return self.table.index[self.table["high_leverage"]]

    @property
    def influential(self) -> pd.Index:
        return self.table.index[self.table["influential"]]

    @property
    def has_outlier(self) -> bool:
        """Does the most extreme observation survive the Bonferroni test?"""
        return bool(self.outlier_bonferroni_p < self.alpha)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leverage_cutoff": self.leverage_cutoff,
            "cooks_cutoff": self.cooks_cutoff,
            "n_high_leverage": int(self.table["high_leverage"].sum()),
            "n_influential": int(self.table["influential"].sum()),
            "outlier": str(self.outlier_label),
            "outlier_student_resid": self.outlier_student_resid,
            "outlier_bonferroni_p": self.outlier_bonferroni_p,
            "has_outlier": self.has_outlier,
        }


@dataclass(frozen=True)
class DiagnosticsReport:
    """All post-fit diagnostics for one FactorModel."""
    specification: str
    heteroscedasticity: HypothesisTest
    autocorrelation: HypothesisTest
    normality: HypothesisTest
    durbin_watson: float
    residual_skew: float
    residual_kurtosis: float
    influence: InfluenceReport
    vif: Optional[pd.Series] = None
    vif_warning: float = THRESHOLDS.vif_warning

    @property
    def issues(self) -> List[str]:
        """Plain-language findings, empty when every check passes."""
        found = []
        if self.heteroscedasticity.rejects_null:
            found.append("Heteroscedastic residuals: prefer robust (HC) standard errors")
        if self.autocorrelation.rejects_null:
            found.append("Lag-1 residual autocorrelation: standard errors understated")
        if self.normality.rejects_null:
            found.append("Non-normal residuals: small-sample t/F inference is approximate")
        if self.influence.has_outlier:
            found.append(f"Outlier at {self.influence.outlier_label} (Bonferroni p="
                         f"{self.influence.outlier_bonferroni_p:.4f})")
        if self.vif is not None and (self.vif > self.vif_warning).any():
            found.append(f"Collinear factors: {list(self.vif[self.vif > self.vif_warning].index)}")
        return found

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specification": self.specification,
            "heteroscedasticity": self.heteroscedasticity.to_dict(),
            "autocorrelation": self.autocorrelation.to_dict(),
            "normality": self.normality.to_dict(),
            "durbin_watson": self.durbin_watson,
            "residual_skew": self.residual_skew,
            "residual_kurtosis": self.residual_kurtosis,
            "influence": self.influence.to_dict(),
            "vif": None if self.vif is None else {k: float(v) for k, v in self.vif.items()},
            "issues": self.issues,
        }


# =============================================================================
# RESIDUAL TESTS
# =============================================================================

def heteroscedasticity_test(model: FactorModel, alpha: float = SIGNIFICANCE_LEVEL) -> HypothesisTest:
    """Breusch-Pagan LM test of residual variance against the regressors."""
    lm, lm_pval, _, _ = het_breuschpagan(model.resid, model.exog)
    return HypothesisTest(
        name="Breusch-Pagan",
        statistic=float(lm),
        p_value=float(lm_pval),
        null_hypothesis="homoscedastic residuals",
        alpha=alpha,
    )


def autocorrelation_test(
    model: FactorModel,
    nlags: int = 1,
    alpha: float = SIGNIFICANCE_LEVEL
) -> HypothesisTest:
    """Breusch-Godfrey LM test for residual autocorrelation up to `nlags`."""
    lm, lm_pval, _, _ = acorr_breusch_godfrey(model.results, nlags=nlags)
    return HypothesisTest(
        name=f"Breusch-Godfrey (lag {nlags})",
        statistic=float(lm),
        p_value=float(lm_pval),
        null_hypothesis="no residual autocorrelation",
        alpha=alpha,
    )


def normality_test(model: FactorModel, alpha: float = SIGNIFICANCE_LEVEL) -> HypothesisTest:
    """Jarque-Bera goodness-of-fit test on residual skewness and kurtosis."""
    jb, jb_pval, _, _ = jarque_bera(model.resid)
    return HypothesisTest(
        name="Jarque-Bera",
        statistic=float(jb),
        p_value=float(jb_pval),
        null_hypothesis="normally distributed residuals",
        alpha=alpha,
    )


# =============================================================================
# INFLUENCE
# =============================================================================

def influence_report(
    model: FactorModel,
    thresholds: DiagnosticThresholds = THRESHOLDS
) -> InfluenceReport:
    """
    Hat values, Cook's distance and studentized residuals with flags.

    Args:
        model: Fitted factor model
        thresholds: Leverage and Cook's distance decision rules

    Returns:
        InfluenceReport
    """
    _require_outlier_dof(model)

    infl = OLSInfluence(model.results)
    n, p = model.n_obs, model.n_predictors

    hat = np.asarray(infl.hat_matrix_diag, dtype=float)
    cooks = np.asarray(infl.cooks_distance[0], dtype=float)
    student = np.asarray(infl.resid_studentized_external, dtype=float)

    leverage_cutoff = thresholds.leverage_cutoff(p, n)
    cooks_cutoff = thresholds.cooks_cutoff(n)

    table = pd.DataFrame({
        "hat": hat,
        "cooks_distance": cooks,
        "student_resid": student,
        "high_leverage": hat > leverage_cutoff,
        "influential": cooks > cooks_cutoff,
    }, index=model.resid.index)

    label, t_max, p_unadj, p_bonf = _bonferroni_outlier(student, table.index, model.df_resid)

    report = InfluenceReport(
        table=table,
        leverage_cutoff=leverage_cutoff,
        cooks_cutoff=cooks_cutoff,
        outlier_label=label,
        outlier_student_resid=t_max,
        outlier_p_value=p_unadj,
        outlier_bonferroni_p=p_bonf,
        alpha=thresholds.alpha,
    )

    logger.debug(
        f"{model.specification}: {len(report.high_leverage)} high-leverage, "
        f"{len(report.influential)} influential observations"
    )
    return report


def _require_outlier_dof(model: FactorModel) -> None:
    """The outlier t test has df_resid - 1 degrees of freedom; it needs at least one."""
    if model.df_resid < 2:
        raise InsufficientObservations(
            model.n_obs, model.n_params + 2,
            f"Influence diagnostics need n_obs >= n_params + 2 "
            f"({model.n_params + 2}), got {model.n_obs}"
        )


def _bonferroni_outlier(student: np.ndarray, index: pd.Index, df_resid: int):
    """
    Most extreme studentized residual and its Bonferroni-adjusted p-value.

    The externally studentized residual follows t with df_resid - 1 degrees
    of freedom.
    """
    if not np.isfinite(student).any():
        return None, np.nan, np.nan, np.nan

    i = int(np.nanargmax(np.abs(student)))
    t_max = float(student[i])
    p_unadj = float(2 * stats.t.sf(abs(t_max), df_resid - 1))
    p_bonf = float(min(1.0, len(student) * p_unadj))
    return index[i], t_max, p_unadj, p_bonf


# =============================================================================
# COLLINEARITY
# =============================================================================

def variance_inflation(model: FactorModel) -> Optional[pd.Series]:
    """VIF per factor; None for single-factor models."""
    if model.n_predictors < 2:
        return None

    exog = model.exog.to_numpy(dtype=float)
    columns = list(model.exog.columns)
    values = {
        name: float(variance_inflation_factor(exog, i))
        for i, name in enumerate(columns) if name != CONSTANT
    }
    return pd.Series(values, name="vif")


# =============================================================================
# ENGINE
# =============================================================================

def diagnose(model: FactorModel, thresholds: DiagnosticThresholds = THRESHOLDS) -> DiagnosticsReport:
    """
    Run every diagnostic on a fitted model.

    Args:
        model: Fitted factor model
        thresholds: Decision rules

    Returns:
        DiagnosticsReport

    Raises:
        InsufficientObservations: fewer than n_params + 2 observations
    """
    _require_outlier_dof(model)

    resid = model.resid.to_numpy(dtype=float)

    report = DiagnosticsReport(
        specification=model.specification,
        heteroscedasticity=heteroscedasticity_test(model, thresholds.alpha),
        autocorrelation=autocorrelation_test(model, thresholds.autocorrelation_lags, thresholds.alpha),
        normality=normality_test(model, thresholds.alpha),
        durbin_watson=float(durbin_watson(resid)),
        residual_skew=float(stats.skew(resid)),
        residual_kurtosis=float(stats.kurtosis(resid, fisher=False)),
        influence=influence_report(model, thresholds),
        vif=variance_inflation(model),
        vif_warning=thresholds.vif_warning,
    )

    logger.info(
        f"{model.specification} diagnostics: BP p={report.heteroscedasticity.p_value:.4f}, "
        f"BG p={report.autocorrelation.p_value:.4f}, JB p={report.normality.p_value:.4f}, "
        f"{len(report.influence.influential)} influential"
    )
    return report
