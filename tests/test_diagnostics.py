"""Tests for residual tests, influence measures and collinearity checks."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from factorlab.config import DiagnosticThresholds
from factorlab.diagnostics import (
    DiagnosticsReport,
    HypothesisTest,
    autocorrelation_test,
    diagnose,
    heteroscedasticity_test,
    influence_report,
    normality_test,
    variance_inflation,
)
from factorlab.exceptions import InsufficientObservations
from factorlab.factor_model import fit_capm, fit_factor_model


def _capm(x: np.ndarray, y: np.ndarray):
    dates = pd.bdate_range("2020-01-01", periods=len(x))
    return fit_capm(pd.Series(y, index=dates, name="stock"), pd.Series(x, index=dates, name="market"))


# =============================================================================
# Influence
# =============================================================================

class TestInfluence:
    def test_far_regressor_is_high_leverage(self, rng):
        x = rng.normal(0.0, 1.0, 30)
        x[-1] = 50.0
        y = 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 30)
        model = _capm(x, y)

        report = influence_report(model)

        assert report.leverage_cutoff == pytest.approx(2 * 2 / 30)
        assert model.resid.index[-1] in report.high_leverage
        assert report.hat_values.iloc[-1] > 0.9

    def test_far_point_off_the_line_is_influential(self, rng):
        x = rng.normal(0.0, 1.0, 30)
        x[-1] = 50.0
        y = 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 30)
        y[-1] += 30.0
        model = _capm(x, y)

        report = influence_report(model)

        assert report.cooks_cutoff == pytest.approx(4 / 30)
        assert model.resid.index[-1] in report.influential
        assert report.cooks_distance.idxmax() == model.resid.index[-1]

    def test_injected_outlier_detected(self, rng):
        x = rng.normal(0.0, 1.0, 100)
        y = 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 100)
        y[20] += 5.0
        model = _capm(x, y)

        report = influence_report(model)

        assert report.outlier_label == model.resid.index[20]
        assert report.outlier_student_resid > 0
        assert report.outlier_bonferroni_p < 0.05
        assert report.has_outlier

    def test_bonferroni_matches_statsmodels(self, rng):
        x = rng.normal(0.0, 1.0, 100)
        y = 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 100)
        y[20] += 5.0
        model = _capm(x, y)

        report = influence_report(model)
        reference = model.results.outlier_test()

        assert report.outlier_bonferroni_p == pytest.approx(
            reference.loc[report.outlier_label, "bonf(p)"], rel=1e-6
        )

    def test_custom_thresholds(self, rng):
        x = rng.normal(0.0, 1.0, 40)
        y = x + rng.normal(0.0, 0.1, 40)
        model = _capm(x, y)

        loose = influence_report(model, DiagnosticThresholds(leverage_multiplier=100, cooks_numerator=100))

        assert len(loose.high_leverage) == 0
        assert len(loose.influential) == 0


# =============================================================================
# Residual tests
# =============================================================================

class TestResidualTests:
    def test_growing_variance_is_heteroscedastic(self, rng):
        x = rng.uniform(1.0, 10.0, 500)
        y = 0.5 + x + rng.normal(0.0, 1.0, 500) * x
        model = _capm(x, y)

        result = heteroscedasticity_test(model)

        assert isinstance(result, HypothesisTest)
        assert result.name == "Breusch-Pagan"
        assert result.rejects_null

    def test_ar1_errors_are_autocorrelated(self, rng):
        n = 500
        shocks = rng.normal(0.0, 1.0, n)
        errors = np.zeros(n)
        for t in range(1, n):
            errors[t] = 0.9 * errors[t - 1] + shocks[t]
        x = rng.normal(0.0, 1.0, n)
        model = _capm(x, 1.0 + 2.0 * x + errors)

        result = autocorrelation_test(model)

        assert result.rejects_null
        assert "lag 1" in result.name

    def test_skewed_errors_are_not_normal(self, rng):
        x = rng.normal(0.0, 1.0, 500)
        y = 1.0 + 2.0 * x + rng.exponential(1.0, 500)
        model = _capm(x, y)

        result = normality_test(model)

        assert result.rejects_null
        assert result.to_dict()["rejects_null"] is True


# =============================================================================
# Full report
# =============================================================================

class TestDiagnose:
    def test_single_factor_has_no_vif(self, rng):
        x = rng.normal(0.0, 1.0, 200)
        model = _capm(x, x + rng.normal(0.0, 0.1, 200))

        assert variance_inflation(model) is None
        assert diagnose(model).vif is None

    def test_near_duplicate_factors_flagged(self, rng):
        n = 200
        dates = pd.bdate_range("2020-01-01", periods=n)
        a = rng.normal(0.0, 1.0, n)
        factors = pd.DataFrame({
            "market": a,
            "oil": a + rng.normal(0.0, 0.01, n),
            "fx": rng.normal(0.0, 1.0, n),
        }, index=dates)
        stock = pd.Series(a + rng.normal(0.0, 0.1, n), index=dates, name="stock")
        model = fit_factor_model(stock, factors, "APT")

        report = diagnose(model)

        assert list(report.vif.index) == ["market", "oil", "fx"]
        assert report.vif["market"] > 10
        assert report.vif["oil"] > 10
        assert report.vif["fx"] < 10
        assert any(issue.startswith("Collinear factors") for issue in report.issues)

    def test_vif_warning_follows_thresholds(self, rng):
        n = 200
        dates = pd.bdate_range("2020-01-01", periods=n)
        a = rng.normal(0.0, 1.0, n)
        factors = pd.DataFrame({
            "market": a,
            "oil": a + rng.normal(0.0, 1.0, n),
        }, index=dates)
        stock = pd.Series(a + rng.normal(0.0, 0.1, n), index=dates, name="stock")
        model = fit_factor_model(stock, factors, "APT")

        default = diagnose(model)
        strict = diagnose(model, DiagnosticThresholds(vif_warning=1.5))

        assert (default.vif < 10).all() and (strict.vif > 1.5).all()
        assert not any(issue.startswith("Collinear") for issue in default.issues)
        assert any(issue.startswith("Collinear") for issue in strict.issues)
        assert strict.vif_warning == 1.5

    def test_too_few_residual_degrees_of_freedom(self):
        dates = pd.bdate_range("2020-01-01", periods=3)
        model = fit_capm(
            pd.Series([1.0, 2.5, 2.9], index=dates, name="stock"),
            pd.Series([0.1, 0.4, 0.5], index=dates, name="market"),
        )

        with pytest.raises(InsufficientObservations) as exc_info:
            influence_report(model)
        with pytest.raises(InsufficientObservations):
            diagnose(model)

        assert exc_info.value.n_params == model.n_params + 2

    def test_report_contents(self, rng):
        x = rng.normal(0.0, 1.0, 200)
        model = _capm(x, 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 200))

        report = diagnose(model)
        payload = report.to_dict()

        assert isinstance(report, DiagnosticsReport)
        assert report.specification == "CAPM"
        assert 0.0 <= report.durbin_watson <= 4.0
        assert set(payload) >= {"heteroscedasticity", "autocorrelation", "normality", "influence", "issues"}
        assert payload["vif"] is None

    def test_model_is_not_mutated(self, rng):
        x = rng.normal(0.0, 1.0, 100)
        model = _capm(x, 1.0 + 2.0 * x + rng.normal(0.0, 0.5, 100))
        params, resid = model.params.copy(), model.resid.copy()

        diagnose(model)

        pd.testing.assert_series_equal(model.params, params)
        pd.testing.assert_series_equal(model.resid, resid)
