# backtest_src/main.py

"""
Rolling-origin backtest of forecasting models with exogenous covariates.

This is the main entry point of the forecast backtester.

Purpose
-------
- Load a target series (and optionally a covariate frame) from CSV
- Build the requested forecast models (Prophet, structural time series,
  SARIMAX, naive benchmarks) from configuration
- Run the same expanding-window backtest for every model
- Print per-horizon performance summaries and an offsets x models table

Configuration-Driven Workflow
-----------------------------
Backtest and model parameters come from ``config/defaults.yaml``, optionally
overridden by a user YAML file (``--config`` or FORECAST_BACKTEST_CONFIG).
CLI arguments override configuration values where applicable. Nothing is
written to disk.
"""

import argparse
import logging
import sys
from typing import List, Optional

from backtesting import (
    BacktestConfig,
    BacktestError,
    BacktestingPipeline,
    ModelComparison,
    create_performance_summary,
)
from config import ConfigurationError, ConfigurationManager
from helpers.log_utils import VALID_LEVELS, setup_logging

from .config_utils import initialize_config, get_config_value
from .data_utils import load_series_csv, load_covariates_csv
from .forecasting_utils import MODEL_CLASSES, create_models_from_config
from .metrics_utils import METRICS, ZeroActualError
from .parsing_utils import parse_column_list, parse_intervals_arg, parse_model_list

logger = logging.getLogger(__name__)


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Rolling-origin backtest of forecasting models with exogenous covariates."
    )

    # Data arguments
    parser.add_argument(
        "--series-csv", type=str, required=True,
        help="CSV with a date column and a value column holding the target series."
    )
    parser.add_argument("--date-column", type=str, default="date", help="Name of the date column.")
    parser.add_argument("--value-column", type=str, default="value", help="Name of the target value column.")
    parser.add_argument(
        "--freq", type=str, default=None,
        help="Aggregate the target onto this pandas frequency (e.g. W) before backtesting."
    )
    parser.add_argument(
        "--covariates-csv", type=str, default=None,
        help="CSV with the date column and one column per covariate."
    )
    parser.add_argument(
        "--covariate-columns", type=str, default=None,
        help="Comma-separated subset of covariate columns to use."
    )
    parser.add_argument(
        "--categorical", type=str, default=None,
        help="Comma-separated covariate columns to one-hot encode."
    )

    # Model arguments
    parser.add_argument(
        "--model", action="append", default=None,
        help=f"Model to backtest; repeat or comma-separate. Choices: {', '.join(MODEL_CLASSES)}."
    )
    parser.add_argument(
        "--no-covariates", action="store_true",
        help="Fit every model on the target alone even when covariates are given."
    )

    # Backtest arguments
    parser.add_argument("--initial-window", type=int, default=None, help="Observations in the first training window.")
    parser.add_argument("--horizon", type=int, default=None, help="Periods forecast per fold.")
    parser.add_argument("--step", type=int, default=None, help="Periods between fold origins.")
    parser.add_argument(
        "--metric", type=str, default=None, choices=sorted(METRICS),
        help="Per-offset error metric."
    )
    parser.add_argument(
        "--aggregation", type=str, default=None, choices=["mean", "median", "trimmed_mean"],
        help="Reducer applied to each horizon offset across folds."
    )
    parser.add_argument(
        "--intervals", type=str, default=None,
        help="Comma-separated confidence levels for the summary intervals (e.g. 80,95)."
    )
    parser.add_argument(
        "--progress", action="store_true", default=None,
        help="Show a progress bar over folds."
    )

    # Runtime arguments
    parser.add_argument("--config", type=str, default=None, help="YAML file merged over the default configuration.")
    parser.add_argument(
        "--log-level", type=str.upper, default=None, choices=list(VALID_LEVELS),
        help="Logging verbosity level (default: logging.level from configuration)."
    )

    return parser


def build_backtest_config(args: argparse.Namespace, manager: ConfigurationManager) -> BacktestConfig:
    """Backtest configuration from the config file with CLI overrides applied."""
    overrides = {
        "initial_window": args.initial_window,
        "horizon": args.horizon,
        "step": args.step,
        "aggregation": args.aggregation,
        "show_progress": args.progress,
    }
    if args.intervals:
        overrides["confidence_levels"] = parse_intervals_arg(args.intervals)
    return BacktestConfig.from_config_manager(manager, **overrides)


def run_backtest_workflow(args: argparse.Namespace, manager: ConfigurationManager) -> ModelComparison:
    """
    Load the data, build the models and backtest each of them.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed CLI arguments
    manager : ConfigurationManager
        Loaded configuration

    Returns
    -------
    ModelComparison
        Score tables for every requested model
    """
    series = load_series_csv(args.series_csv, args.date_column, args.value_column, freq=args.freq)

    covariates = None
    if args.covariates_csv:
        covariates = load_covariates_csv(
            args.covariates_csv, args.date_column,
            columns=parse_column_list(args.covariate_columns),
            categorical=parse_column_list(args.categorical),
        )

    config = build_backtest_config(args, manager)
    logger.info("Backtest configuration: W=%d, H=%d, S=%d, aggregation=%s",
                config.initial_window, config.horizon, config.step, config.aggregation.value)

    model_names = parse_model_list(args.model)
    models = create_models_from_config(model_names, manager, use_covariates=not args.no_covariates)
    metric = get_config_value("backtesting.evaluation.metric", "mae", args, "metric")

    pipeline = BacktestingPipeline(config)
    return pipeline.compare_models(series, covariates, models, metric)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the forecast backtester.

    Returns
    -------
    int
        Exit status: 0 on success, 1 when the backtest fails, 2 on
        configuration or argument errors
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    try:
        manager = initialize_config(args.config)
    except ConfigurationError as e:
        setup_logging(args.log_level)
        logger.error("%s", e)
        return 2

    setup_logging(get_config_value("logging.level", "INFO", args, "log_level"))

    try:
        comparison = run_backtest_workflow(args, manager)
    except BacktestError as e:
        logger.error("Backtest failed: %s", e)
        return 1
    except ZeroActualError as e:
        logger.error("Backtest failed: %s; use a metric without percentage errors", e)
        return 1
    except ValueError as e:
        logger.error("Invalid arguments: %s", e)
        return 2

    for name, table in comparison.score_tables.items():
        levels = comparison.results[name].config.confidence_levels
        print(create_performance_summary(table, confidence_levels=levels))
        print()

    print("Aggregated error by horizon offset:")
    print(comparison.to_frame().to_string(float_format=lambda v: f"{v:.4f}"))
    print()
    print("Offsets won per model:")
    print(comparison.best_model_by_offset().value_counts().to_string())
    return 0


if __name__ == "__main__":
    sys.exit(main())
