#!/usr/bin/env python3
"""
Factor Model Research Pipeline - Command Line Runner

Fetches a stock, a market index and three FRED macro series, converts them
to excess log returns, fits CAPM and APT models and prints the regression
diagnostics.

EXECUTION
    python run_analysis.py
    python run_analysis.py --stock AAPL --market ^GSPC
    python run_analysis.py --start 2015-01-01 --end 2020-01-01 --json outputs/run.json

EXIT CODES
    0   Pipeline completed
    1   Pipeline aborted (data source, alignment, rate lookup or fitting error)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from factorlab.config import DATA, PIPELINE_VERSION, describe_config
from factorlab.diagnostics import DiagnosticsReport
from factorlab.exceptions import FactorLabError
from factorlab.factor_model import FactorModel
from factorlab.pipeline import FactorPipeline, PipelineOutput


logger = logging.getLogger(__name__)

BANNER = r'''
╔═══════════════════════════════════════════════════════════════════════════════╗
║                                                                               ║
║              FACTOR MODEL RESEARCH PIPELINE                                   ║
║              CAPM / APT with regression diagnostics                           ║
║                                                                               ║
╚═══════════════════════════════════════════════════════════════════════════════╝
'''


# =============================================================================
# DISPLAY COMPONENTS
# =============================================================================

def print_section_header(title: str, char: str = "═") -> None:
    """Print a formatted section header."""
    width = 79
    print()
    print(char * width)
    print(f"  {title}")
    print(char * width)


def print_subsection(title: str) -> None:
    """Print a subsection divider."""
    print()
    print(f"  {'─' * 75}")
    print(f"  {title}")
    print(f"  {'─' * 75}")


def format_percent(value: float, precision: int = 2) -> str:
    """Format a value as percentage."""
    return f"{value * 100:.{precision}f}%"


def print_model(model: FactorModel) -> None:
    print_subsection(f"{model.specification}: {model.dependent} ~ {' + '.join(model.factors)}")
    print(f"    {'':<10}{'coef':>12}{'std err':>12}{'t':>10}{'p':>10}")
    for name, row in model.summary_frame().iterrows():
        print(f"    {name:<10}{row['coef']:>12.6f}{row['std_err']:>12.6f}"
              f"{row['t']:>10.2f}{row['p_value']:>10.4f}")
    print(f"\n    Observations: {model.n_obs:,} | R²: {model.rsquared:.4f} | "
          f"Adj. R²: {model.rsquared_adj:.4f}")
    print(f"    Alpha (annualized): {format_percent(model.alpha_annualized)} "
          f"({'significant' if model.alpha_significant else 'not significant'})")


def print_diagnostics(report: DiagnosticsReport) -> None:
    infl = report.influence
    print(f"\n    Residual tests:")
    for test in (report.heteroscedasticity, report.autocorrelation, report.normality):
        verdict = "REJECT" if test.rejects_null else "pass"
        print(f"      {test.name:<26} stat={test.statistic:>10.3f}  p={test.p_value:.4f}  {verdict}")
    print(f"      Durbin-Watson: {report.durbin_watson:.3f} | "
          f"Skew: {report.residual_skew:.2f} | Kurtosis: {report.residual_kurtosis:.2f}")

    print(f"\n    Influence:")
    print(f"      High leverage (h > {infl.leverage_cutoff:.4f}): {len(infl.high_leverage)}")
    print(f"      Influential (D > {infl.cooks_cutoff:.4f}):    {len(infl.influential)}")
    print(f"      Most extreme: {infl.outlier_label} "
          f"(t={infl.outlier_student_resid:.2f}, Bonferroni p={infl.outlier_bonferroni_p:.4f})")

    if report.vif is not None:
        print(f"\n    VIF: " + ", ".join(f"{k}={v:.2f}" for k, v in report.vif.items()))

    if report.issues:
        print(f"\n    Findings:")
        for issue in report.issues:
            print(f"      - {issue}")


def print_report(output: PipelineOutput) -> None:
    """Print formatted console report."""
    print_section_header("DATA")
    for label, value in describe_config(output.config).items():
        print(f"    {label + ':':<16}{value}")
    print(f"    {'Aligned:':<16}{output.period[0]} to {output.period[1]} "
          f"({len(output.prices):,} dates)")

    print_subsection("Excess Log Returns")
    summary = output.return_summary
    print(f"    {'':<10}{'ann mean':>10}{'ann vol':>10}{'skew':>8}{'kurt':>8}")
    for name, row in summary.iterrows():
        print(f"    {name:<10}{format_percent(row['ann_mean']):>10}"
              f"{format_percent(row['ann_vol']):>10}{row['skew']:>8.2f}{row['excess_kurtosis']:>8.2f}")

    print_subsection("Stationarity (ADF)")
    for kind, results in (("level", output.price_stationarity), ("return", output.return_stationarity)):
        for name, res in results.items():
            print(f"    {name:<8}{kind:<8} ADF={res.adf_statistic:>8.3f}  p={res.adf_p_value:.4f}  "
                  f"{res.conclusion.value}")

    print_section_header("FACTOR MODELS")
    print_model(output.capm)
    print_diagnostics(output.capm_diagnostics)
    print_model(output.apt)
    print_diagnostics(output.apt_diagnostics)

    print_section_header("PROVENANCE")
    for p in output.provenance:
        print(f"    {p.symbol:<12}{p.source:<15}{p.record_count:>6} rows  hash {p.data_hash}")
    print(f"\n    Processing time: {output.processing_time_ms:.0f}ms | Version: {output.pipeline_version}")
    print()


# =============================================================================
# COMMAND-LINE INTERFACE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=f"Factor Model Research Pipeline v{PIPELINE_VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_analysis.py
  python run_analysis.py --stock AAPL
  python run_analysis.py --start 2015-01-01 --end 2020-01-01 --cov-type HC1
        """
    )
    parser.add_argument("--stock", "-s", default=DATA.stock_symbol,
                        help=f"Stock ticker (default: {DATA.stock_symbol})")
    parser.add_argument("--market", "-m", default=DATA.market_symbol,
                        help=f"Market index ticker (default: {DATA.market_symbol})")
    parser.add_argument("--start", default=DATA.start,
                        help=f"Start date YYYY-MM-DD (default: {DATA.start})")
    parser.add_argument("--end", default=DATA.end,
                        help=f"End date YYYY-MM-DD (default: {DATA.end})")
    parser.add_argument("--rate-series", default=DATA.rate_series,
                        help=f"FRED monthly rate series, percent (default: {DATA.rate_series})")
    parser.add_argument("--oil-series", default=DATA.oil_series,
                        help=f"FRED oil price series (default: {DATA.oil_series})")
    parser.add_argument("--fx-series", default=DATA.fx_series,
                        help=f"FRED FX rate series (default: {DATA.fx_series})")
    parser.add_argument("--cov-type", default="nonrobust",
                        choices=["nonrobust", "HC0", "HC1", "HC2", "HC3"],
                        help="Coefficient covariance estimator (default: nonrobust)")
    parser.add_argument("--strict-edges", action="store_true",
                        help="Fail on leading/trailing gaps instead of dropping those rows")
    parser.add_argument("--json", type=Path, default=None,
                        help="Write the run summary as JSON to this path")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {PIPELINE_VERSION}")
    return parser


def main(argv=None) -> int:
    """
    Command-line entry point.

    Returns:
        0 on success, 1 on failure
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="  %(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S"
    )

    config = replace(
        DATA,
        stock_symbol=args.stock,
        market_symbol=args.market,
        start=args.start,
        end=args.end,
        rate_series=args.rate_series,
        oil_series=args.oil_series,
        fx_series=args.fx_series,
    )

    print(BANNER)
    print(f"  Execution Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Stock / Market:    {config.stock_symbol} / {config.market_symbol}")
    print(f"  Analysis Period:   {config.start} to {config.end}")
    print(f"  Version:           {PIPELINE_VERSION}")

    pipeline = FactorPipeline(
        config=config,
        cov_type=args.cov_type,
        drop_edge_gaps=not args.strict_edges,
    )

    try:
        output = pipeline.run()
    except FactorLabError as e:
        logger.error(f"Pipeline aborted ({type(e).__name__}): {e}")
        return 1
    except Exception as e:
        logger.error(f"Pipeline failed: {e}")
        import traceback
        traceback.print_exc()
        return 1

    print_report(output)

    if args.json is not None:
        args.json.parent.mkdir(parents=True, exist_ok=True)
        with open(args.json, 'w') as f:
            json.dump(output.to_dict(), f, indent=2, default=str)
        logger.info(f"Saved: {args.json}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
