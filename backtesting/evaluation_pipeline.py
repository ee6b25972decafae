"""Multi-model backtesting evaluation pipeline.

This module runs one rolling-origin harness per forecast model over the same
series and covariates, and collects the per-horizon score tables side by
side. It also scores already-produced held-out forecasts directly, without a
backtest loop.

Features:
- One harness parameterized over any number of models
- Offsets x models comparison table and per-offset winner
- Held-out RMSE / MAE / MAPE comparison with a Diebold-Mariano test
- Configuration system integration
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from backtest_src.metrics_utils import compare_forecasts, diebold_mariano

from .metrics_aggregation import ScoreTable, create_performance_summary
from .rolling_origin import BacktestConfig, BacktestResult, MetricFunc, RollingOriginValidator

logger = logging.getLogger(__name__)


@dataclass
class ModelComparison:
    """Backtest results for several models evaluated on identical folds."""

    results: Dict[str, BacktestResult] = field(default_factory=dict)
    execution_time: Optional[float] = None

    @property
    def model_names(self):
        return list(self.results)

    @property
    def score_tables(self) -> Dict[str, ScoreTable]:
        return {name: result.score_table for name, result in self.results.items()}

    def __getitem__(self, model_name: str) -> ScoreTable:
        return self.results[model_name].score_table

    def to_frame(self) -> pd.DataFrame:
        """Aggregated error with one row per horizon offset and one column per model."""
        frame = pd.DataFrame({name: table.to_series() for name, table in self.score_tables.items()})
        frame.index.name = "horizon_offset"
        return frame

    def mean_error(self) -> pd.Series:
        """Mean of each model's per-offset scores; NaN scores propagate."""
        return self.to_frame().mean(skipna=False).rename("mean_error")

    def best_model_by_offset(self) -> pd.Series:
        """Name of the model with the lowest score at each offset (None where all scores are NaN)."""
        frame = self.to_frame()
        best = {}
        for offset, row in frame.iterrows():
            finite = row.dropna()
            best[offset] = finite.idxmin() if not finite.empty else None
        return pd.Series(best, name="best_model", dtype=object).rename_axis("horizon_offset")

    def summary(self, max_rows: Optional[int] = 10) -> str:
        sections = [create_performance_summary(result.score_table, result.config.confidence_levels, max_rows)
                    for result in self.results.values()]
        return "\n\n".join(sections)


class BacktestingPipeline:
    """Backtest several interchangeable forecast models on the same data."""

    def __init__(self, config: Optional[BacktestConfig] = None, config_manager: Optional[Any] = None):
        """Initialize the backtesting pipeline.

        Parameters
        ----------
        config : BacktestConfig, optional
            Backtesting configuration; takes precedence over ``config_manager``
        config_manager : ConfigurationManager, optional
            Source of the configuration when ``config`` is not given
        """
        if config is None and config_manager is not None:
            config = BacktestConfig.from_config_manager(config_manager)
        self.config = config or BacktestConfig()
        self.config_manager = config_manager

    def compare_models(self,
                       series: pd.Series,
                       covariates: Optional[pd.DataFrame],
                       models: Mapping[str, Any],
                       metric: Union[str, MetricFunc, None] = None) -> ModelComparison:
        """Run the rolling-origin backtest for every model.

        Parameters
        ----------
        series : pd.Series
            Target time series
        covariates : pd.DataFrame, optional
            Covariates shared by all models
        models : Mapping[str, ForecastModel]
            Label -> model; labels become the comparison columns
        metric : str or callable, optional
            Per-offset error function; absolute error when None

        Returns
        -------
        ModelComparison
            One BacktestResult per model

        Raises
        ------
        BacktestError
            The first failure of any model aborts the whole comparison
        """
        if not models:
            raise ValueError("No models to compare")

        start_time = datetime.now()
        logger.info("Comparing %d models: %s", len(models), ", ".join(models))

        validator = RollingOriginValidator(self.config)
        comparison = ModelComparison()
        for name, model in models.items():
            result = validator.validate(series, model, covariates, metric)
            result.score_table.model_name = name
            result.model_name = name
            comparison.results[name] = result

        comparison.execution_time = (datetime.now() - start_time).total_seconds()
        logger.info("Model comparison completed in %.2f seconds", comparison.execution_time)
        return comparison

    def compare_holdout(self,
                        actual: Sequence[float],
                        forecasts: Mapping[str, Sequence[float]],
                        mape_epsilon: Optional[float] = None,
                        horizon: int = 1) -> pd.DataFrame:
        """Score already-produced forecasts of one held-out period.

        Parameters
        ----------
        actual : sequence of float
            Held-out actual values
        forecasts : Mapping[str, sequence of float]
            Model name -> forecast vector aligned with ``actual``
        mape_epsilon : float, optional
            Use epsilon-stabilized MAPE instead of strict MAPE
        horizon : int
            Forecast horizon used for the Diebold-Mariano variance

        Returns
        -------
        pd.DataFrame
            RMSE, MAE and MAPE per model. With exactly two forecasts, the
            Diebold-Mariano statistic and p-value are stored in
            ``frame.attrs["diebold_mariano"]``.

        Raises
        ------
        ZeroActualError
            Strict MAPE with a zero actual value
        """
        table = compare_forecasts(actual, forecasts, mape_epsilon=mape_epsilon)

        if len(forecasts) == 2:
            (name1, f1), (name2, f2) = forecasts.items()
            stat, p_value = diebold_mariano(actual, f1, f2, h=horizon)
            table.attrs["diebold_mariano"] = {
                "models": (name1, name2),
                "statistic": stat,
                "p_value": p_value,
            }
            if np.isfinite(p_value):
                logger.info("Diebold-Mariano %s vs %s: stat=%.3f, p=%.3f", name1, name2, stat, p_value)
            else:
                logger.warning("Diebold-Mariano test for %s vs %s could not be computed", name1, name2)

        return table


def run_model_comparison(series: pd.Series,
                         models: Mapping[str, Any],
                         covariates: Optional[pd.DataFrame] = None,
                         metric: Union[str, MetricFunc, None] = None,
                         config: Optional[BacktestConfig] = None) -> ModelComparison:
    """Convenience function for multi-model backtesting.

    Returns
    -------
    ModelComparison
        One BacktestResult per model
    """
    pipeline = BacktestingPipeline(config)
    return pipeline.compare_models(series, covariates, models, metric)
