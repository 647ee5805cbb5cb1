"""
Factor Model Research Pipeline

Orchestrates the complete CAPM / APT investigation.

PIPELINE ARCHITECTURE
    Stage 1 - ACQUIRE
        Adjusted closes (stock, market) and FRED macro series (risk-free
        rate, oil, FX) for the configured window.

    Stage 2 - ALIGN
        Left-join every series onto the stock's trading dates, interpolate
        interior gaps, drop unresolved edge rows.

    Stage 3 - TRANSFORM
        Log returns, monthly rate table, daily risk-free series, excess
        returns.

    Stage 4 - TEST
        ADF / KPSS on price levels (expected non-stationary) and on excess
        returns (expected stationary).

    Stage 5 - FIT
        CAPM (market only) and APT (market, oil, FX) by OLS.

    Stage 6 - DIAGNOSE
        Residual tests, leverage, Cook's distance, outlier test, VIF.

Stages run strictly in order. Any pipeline error propagates and aborts the
run; nothing is retried.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from factorlab.alignment import align_series
from factorlab.config import (
    DATA,
    PIPELINE_VERSION,
    THRESHOLDS,
    DataConfig,
    DiagnosticThresholds,
    PipelineStage,
    describe_config,
)
from factorlab.data_loader import DataProvenance, DataSource, LoadedData, MarketDataLoader, load_data
from factorlab.diagnostics import DiagnosticsReport, diagnose
from factorlab.factor_model import FactorModel, fit_apt, fit_capm
from factorlab.returns import MonthlyRateTable, ReturnSet, compute_excess_returns, describe_returns
from factorlab.stationarity import StationarityResult, check_columns, require_stationary

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT
# =============================================================================

@dataclass(frozen=True)
class PipelineOutput:
    """Everything one run produced."""
    config: DataConfig
    prices: pd.DataFrame
    returns: ReturnSet
    return_summary: pd.DataFrame
    price_stationarity: Dict[str, StationarityResult]
    return_stationarity: Dict[str, StationarityResult]
    capm: FactorModel
    apt: FactorModel
    capm_diagnostics: DiagnosticsReport
    apt_diagnostics: DiagnosticsReport
    provenance: List[DataProvenance]
    processing_time_ms: float
    pipeline_version: str
    generated_at: str

    @property
    def non_stationary_returns(self) -> List[str]:
        return [k for k, v in self.return_stationarity.items() if not v.is_stationary]

    @property
    def period(self) -> tuple:
        return (str(self.prices.index[0].date()), str(self.prices.index[-1].date()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "config": describe_config(self.config),
            "period": list(self.period),
            "observations": {
                "prices": len(self.prices),
                "returns": self.returns.n_obs,
            },
            "return_summary": self.return_summary.to_dict(orient="index"),
            "stationarity": {
                "prices": {k: v.to_dict() for k, v in self.price_stationarity.items()},
                "returns": {k: v.to_dict() for k, v in self.return_stationarity.items()},
            },
            "models": {
                "capm": self.capm.to_dict(),
                "apt": self.apt.to_dict(),
            },
            "diagnostics": {
                "capm": self.capm_diagnostics.to_dict(),
                "apt": self.apt_diagnostics.to_dict(),
            },
            "provenance": [p.to_dict() for p in self.provenance],
            "processing_time_ms": self.processing_time_ms,
            "version": self.pipeline_version,
            "generated_at": self.generated_at,
        }


# =============================================================================
# PIPELINE
# =============================================================================

class FactorPipeline:
    """
    Runs acquisition, alignment, return transform, stationarity testing,
    model fitting and diagnostics in sequence.
    """

    def __init__(
        self,
        config: DataConfig = DATA,
        source: Optional[DataSource] = None,
        thresholds: DiagnosticThresholds = THRESHOLDS,
        cov_type: str = "nonrobust",
        drop_edge_gaps: bool = True
    ):
        """
        Initialize pipeline.

        Args:
            config: Instruments and observation window
            source: Data source; Yahoo Finance / FRED when omitted
            thresholds: Diagnostic decision rules
            cov_type: Covariance estimator for coefficient inference
            drop_edge_gaps: Drop rows with unresolved leading/trailing gaps
                instead of failing
        """
        self.config = config
        self.source = source
        self.thresholds = thresholds
        self.cov_type = cov_type
        self.drop_edge_gaps = drop_edge_gaps

    def run(self) -> PipelineOutput:
        """Execute every stage, starting from data acquisition."""
        logger.info(f"Stage 1: {PipelineStage.ACQUIRE.value}...")
        data = load_data(self.source or MarketDataLoader(), self.config)
        return self.run_from_data(data)

    def run_from_data(self, data: LoadedData) -> PipelineOutput:
        """Execute stages 2-6 on already loaded series."""
        t0 = time.perf_counter()
        cfg = self.config

        logger.info(f"Stage 2: {PipelineStage.ALIGN.value}...")
        prices = align_series(
            data.stock, data.market, data.oil, data.fx,
            drop_edge_gaps=self.drop_edge_gaps,
        )

        logger.info(f"Stage 3: {PipelineStage.TRANSFORM.value}...")
        rates = MonthlyRateTable.from_series(data.monthly_rate)
        returns = compute_excess_returns(prices, rates)
        summary = describe_returns(returns.excess)

        logger.info(f"Stage 4: {PipelineStage.TEST.value}...")
        price_tests = check_columns(prices, self.thresholds.alpha)
        return_tests = check_columns(returns.excess, self.thresholds.alpha)
        levels_stationary = [k for k, v in price_tests.items() if v.is_stationary]
        if levels_stationary:
            logger.info(f"Price levels unexpectedly stationary: {levels_stationary}")
        require_stationary(return_tests)

        logger.info(f"Stage 5: {PipelineStage.FIT.value}...")
        excess = returns.excess
        capm = fit_capm(excess[cfg.stock_column], excess[cfg.market_column], self.cov_type)
        apt = fit_apt(excess[cfg.stock_column], excess[list(cfg.factor_columns)], self.cov_type)

        logger.info(f"Stage 6: {PipelineStage.DIAGNOSE.value}...")
        capm_diag = diagnose(capm, self.thresholds)
        apt_diag = diagnose(apt, self.thresholds)

        processing_time = (time.perf_counter() - t0) * 1000

        output = PipelineOutput(
            config=cfg,
            prices=prices,
            returns=returns,
            return_summary=summary,
            price_stationarity=price_tests,
            return_stationarity=return_tests,
            capm=capm,
            apt=apt,
            capm_diagnostics=capm_diag,
            apt_diagnostics=apt_diag,
            provenance=list(data.provenance),
            processing_time_ms=processing_time,
            pipeline_version=PIPELINE_VERSION,
            generated_at=datetime.now().isoformat(),
        )

        logger.info(f"Pipeline complete in {processing_time:.0f}ms")
        return output
