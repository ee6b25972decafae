"""Rolling-origin cross-validation for time series forecasting.

This module implements the expanding-window backtest: the training window
always starts at the first observation and grows by ``step`` periods per fold,
while the test window stays ``horizon`` periods long.

Features:
- Fold generation with fold count floor((L - W - H) / S) + 1
- Covariate alignment checked for every fold before anything is fitted
- Any forecast model exposing ``fit`` / ``predict`` (see ``forecasters``)
- Per-offset errors accumulated as (fold_index, horizon_offset, error) records
- Order-independent aggregation into a ``ScoreTable``
- Abort on the first failing fold, with fold index and timestamp ranges
- Integration with configuration system
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from backtest_src.metrics_utils import absolute_error, get_metric
from helpers.temporal import find_missing_covariates, validate_time_series

from .exceptions import (
    CovariateAlignmentError,
    InsufficientDataError,
    ModelFitError,
    ModelPredictError,
    SeriesValidationError,
    format_timestamp,
)
from .metrics_aggregation import AggregationMethod, ErrorRecord, ScoreTable, aggregate_errors

logger = logging.getLogger(__name__)

MetricFunc = Callable[[Sequence[float], Sequence[float]], float]


@dataclass
class BacktestConfig:
    """Configuration for rolling-origin backtesting."""

    # Core parameters
    initial_window: int = 104           # Observations in the first training window
    horizon: int = 52                   # Steps ahead to forecast per fold
    step: int = 1                       # Steps between fold origins

    # Evaluation settings
    aggregation: Union[str, AggregationMethod] = AggregationMethod.MEAN
    confidence_levels: List[int] = field(default_factory=lambda: [80, 95])

    # Index checks
    frequency: Optional[str] = None     # Nominal frequency; inferred when None
    require_regular_index: bool = True

    show_progress: bool = False

    def __post_init__(self):
        for name in ("initial_window", "horizon", "step"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
            setattr(self, name, int(value))
        self.aggregation = AggregationMethod.coerce(self.aggregation)

    @property
    def min_total_length(self) -> int:
        """Shortest series that yields at least one fold."""
        return self.initial_window + self.horizon

    @classmethod
    def from_config_manager(cls, config_manager, **overrides) -> 'BacktestConfig':
        """Create BacktestConfig from configuration manager.

        Parameters
        ----------
        config_manager : ConfigurationManager
            Configuration manager instance
        **overrides
            Field values that take precedence over the configuration file
            (None values are ignored)

        Returns
        -------
        BacktestConfig
            Configured backtest configuration
        """
        base_config = config_manager.get_backtesting_config()
        rolling_config = base_config.get('rolling_origin', {}) or {}
        eval_config = base_config.get('evaluation', {}) or {}
        defaults = cls()

        values = {
            'initial_window': rolling_config.get('initial_window', defaults.initial_window),
            'horizon': rolling_config.get('horizon', defaults.horizon),
            'step': rolling_config.get('step', defaults.step),
            'frequency': rolling_config.get('frequency', defaults.frequency),
            'require_regular_index': rolling_config.get('require_regular_index', defaults.require_regular_index),
            'aggregation': eval_config.get('aggregation', defaults.aggregation),
            'confidence_levels': eval_config.get('confidence_levels', defaults.confidence_levels),
            'show_progress': base_config.get('show_progress', defaults.show_progress),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        logger.info("Loaded backtest configuration from config manager")
        return cls(**values)


@dataclass(frozen=True)
class Fold:
    """One train/test split, expressed as positions into the series."""

    fold_index: int
    train_end: int      # split position s; training is [0, s)
    horizon: int

    @property
    def train_slice(self) -> slice:
        return slice(0, self.train_end)

    @property
    def test_slice(self) -> slice:
        return slice(self.train_end, self.train_end + self.horizon)

    @property
    def test_end(self) -> int:
        return self.train_end + self.horizon

    def train_range(self, index: pd.Index) -> Tuple[Any, Any]:
        return index[0], index[self.train_end - 1]

    def test_range(self, index: pd.Index) -> Tuple[Any, Any]:
        return index[self.train_end], index[self.test_end - 1]


@dataclass
class FoldResult:
    """Results from a single backtest fold."""

    fold: Fold
    train_range: Tuple[Any, Any]
    test_range: Tuple[Any, Any]
    actuals: pd.Series
    point: np.ndarray
    errors: np.ndarray                  # errors[h - 1] is the error at offset h
    lower: Optional[np.ndarray] = None
    upper: Optional[np.ndarray] = None
    interval_level: Optional[float] = None

    # Timing information
    fit_time: Optional[float] = None
    forecast_time: Optional[float] = None

    def __post_init__(self):
        if len(self.point) != len(self.actuals) or len(self.errors) != len(self.actuals):
            raise ValueError("Forecasts, actuals and errors must have same length")

    @property
    def fold_index(self) -> int:
        return self.fold.fold_index

    @property
    def train_size(self) -> int:
        return self.fold.train_end

    def error_records(self) -> List[ErrorRecord]:
        return [(self.fold_index, h, float(err)) for h, err in enumerate(self.errors, start=1)]

    def to_frame(self) -> pd.DataFrame:
        """Per-offset rows: timestamp, actual, point, lower, upper, error."""
        frame = pd.DataFrame({
            'timestamp': self.actuals.index.to_numpy(),
            'actual': self.actuals.to_numpy(dtype=float),
            'point': self.point,
            'lower': self.lower if self.lower is not None else np.nan,
            'upper': self.upper if self.upper is not None else np.nan,
            'error': self.errors,
        }, index=pd.RangeIndex(1, len(self.errors) + 1, name='horizon_offset'))
        frame.insert(0, 'fold_index', self.fold_index)
        return frame


@dataclass
class BacktestResult:
    """Complete results from rolling-origin backtesting."""

    config: BacktestConfig
    score_table: ScoreTable
    fold_results: List[FoldResult]
    model_name: Optional[str] = None
    total_execution_time: Optional[float] = None

    @property
    def n_folds(self) -> int:
        return len(self.fold_results)

    def forecasts_frame(self) -> pd.DataFrame:
        """All folds' per-offset forecasts stacked into one long frame."""
        return pd.concat([fold.to_frame() for fold in self.fold_results]).reset_index()


def generate_fold_starts(n_obs: int, initial_window: int, horizon: int, step: int = 1) -> List[int]:
    """Split positions W, W+S, W+2S, ... for which the test window fits.

    Parameters
    ----------
    n_obs : int
        Series length L
    initial_window, horizon, step : int
        W, H and S; all positive

    Returns
    -------
    List[int]
        Increasing fold start positions; empty when L < W + H
    """
    if initial_window <= 0 or horizon <= 0 or step <= 0:
        raise ValueError("initial_window, horizon and step must be positive")
    return list(range(initial_window, n_obs - horizon + 1, step))


def _model_name(model: Any) -> str:
    return getattr(model, 'name', None) or type(model).__name__


class RollingOriginValidator:
    """Expanding-window rolling-origin validator for forecast models."""

    def __init__(self, config: Optional[BacktestConfig] = None):
        """Initialize the validator.

        Parameters
        ----------
        config : BacktestConfig, optional
            Backtesting configuration. If None, uses defaults.
        """
        self.config = config or BacktestConfig()

    def generate_folds(self, n_obs: int) -> List[Fold]:
        """Fold definitions for a series of ``n_obs`` observations.

        Raises
        ------
        InsufficientDataError
            If the series cannot hold the initial window plus one horizon
        """
        cfg = self.config
        if cfg.initial_window >= n_obs:
            raise InsufficientDataError(
                f"initial_window ({cfg.initial_window}) must be smaller than the series length ({n_obs})")
        if n_obs < cfg.min_total_length:
            raise InsufficientDataError(
                f"Insufficient data: {n_obs} obs, need at least {cfg.min_total_length} "
                f"(initial_window {cfg.initial_window} + horizon {cfg.horizon})")

        starts = generate_fold_starts(n_obs, cfg.initial_window, cfg.horizon, cfg.step)
        return [Fold(fold_index=i, train_end=s, horizon=cfg.horizon) for i, s in enumerate(starts)]

    def validate(self,
                 series: pd.Series,
                 model: Any,
                 covariates: Optional[pd.DataFrame] = None,
                 metric: Union[str, MetricFunc, None] = None) -> BacktestResult:
        """Run rolling-origin cross-validation.

        Parameters
        ----------
        series : pd.Series
            Target series with a regular DatetimeIndex
        model : ForecastModel
            Object exposing ``fit(series, covariates)`` and
            ``predict(fitted, horizon, future_covariates)``
        covariates : pd.DataFrame, optional
            Covariate rows indexed by timestamp; must cover every timestamp
            any fold reads
        metric : str or callable, optional
            Per-offset error function; absolute error when None

        Returns
        -------
        BacktestResult
            Score table plus per-fold results

        Raises
        ------
        InsufficientDataError, SeriesValidationError, CovariateAlignmentError
            Before any fold runs
        ModelFitError, ModelPredictError
            From the first failing fold, annotated with its context
        """
        start_time = datetime.now()
        metric_func = get_metric(metric) if metric is not None else absolute_error
        metric_name = getattr(metric_func, '__name__', 'error')
        model_name = _model_name(model)

        folds = self.generate_folds(len(series))
        self._validate_series(series)
        aligned = self._align_covariates(series, covariates, folds)

        logger.info("Starting rolling-origin backtest of %s with %d folds (W=%d, H=%d, S=%d)",
                    model_name, len(folds), self.config.initial_window,
                    self.config.horizon, self.config.step)

        fold_results: List[FoldResult] = []
        records: List[ErrorRecord] = []
        iterator = tqdm(folds, desc=f"Backtesting {model_name}", unit="fold",
                        disable=not self.config.show_progress)
        for fold in iterator:
            fold_result = self.run_fold(fold, series, aligned, model, metric_func)
            fold_results.append(fold_result)
            records.extend(fold_result.error_records())

        score_table = aggregate_errors(records, self.config.aggregation, metric_name, model_name)
        execution_time = (datetime.now() - start_time).total_seconds()

        logger.info("Rolling-origin backtest of %s completed: %d folds in %.2fs",
                    model_name, len(fold_results), execution_time)

        return BacktestResult(
            config=self.config,
            score_table=score_table,
            fold_results=fold_results,
            model_name=model_name,
            total_execution_time=execution_time,
        )

    def run(self,
            series: pd.Series,
            covariates: Optional[pd.DataFrame],
            model: Any,
            metric: Union[str, MetricFunc, None] = None) -> ScoreTable:
        """Backtest ``model`` on ``series`` and return its per-horizon scores."""
        return self.validate(series, model, covariates, metric).score_table

    def run_fold(self,
                 fold: Fold,
                 series: pd.Series,
                 covariates: Optional[pd.DataFrame],
                 model: Any,
                 metric: Union[str, MetricFunc, None] = None) -> FoldResult:
        """Fit, forecast and score a single fold.

        ``covariates`` should already be aligned with ``series`` (as done by
        ``validate``); otherwise it is reindexed onto the series index.
        """
        metric_func = get_metric(metric) if metric is not None else absolute_error
        model_name = _model_name(model)
        horizon = fold.horizon
        if fold.test_end > len(series):
            raise InsufficientDataError(
                f"Fold {fold.fold_index} needs {fold.test_end} observations, series has {len(series)}")

        if covariates is not None and not covariates.index.equals(series.index):
            covariates = covariates.reindex(series.index)

        train_range = fold.train_range(series.index)
        test_range = fold.test_range(series.index)

        endog_train = series.iloc[fold.train_slice]
        endog_test = series.iloc[fold.test_slice]
        exog_train = covariates.iloc[fold.train_slice] if covariates is not None else None
        exog_test = covariates.iloc[fold.test_slice] if covariates is not None else None

        logger.debug("Running fold %d: train=%s to %s (%d obs), test=%s to %s",
                     fold.fold_index, train_range[0], train_range[1], len(endog_train),
                     test_range[0], test_range[1])

        # Fit model
        fit_start = time.perf_counter()
        try:
            fitted = model.fit(endog_train, exog_train)
        except ModelFitError as e:
            logger.error("Model fitting failed in fold %d: %s", fold.fold_index, e.message)
            raise e.with_fold(fold.fold_index, train_range, test_range)
        except Exception as e:
            logger.error("Model fitting failed in fold %d: %s", fold.fold_index, e)
            raise ModelFitError(f"{model_name} failed to fit: {e}", fold_index=fold.fold_index,
                                train_range=train_range, test_range=test_range) from e
        fit_time = time.perf_counter() - fit_start

        # Generate forecasts
        forecast_start = time.perf_counter()
        try:
            forecast = model.predict(fitted, horizon, exog_test)
            point = np.asarray(getattr(forecast, 'point', forecast), dtype=float).ravel()
            if len(point) != horizon:
                raise ModelPredictError(
                    f"{model_name} returned {len(point)} point forecasts for a horizon of {horizon}")
        except ModelPredictError as e:
            logger.error("Forecasting failed in fold %d: %s", fold.fold_index, e.message)
            raise e.with_fold(fold.fold_index, train_range, test_range)
        except Exception as e:
            logger.error("Forecasting failed in fold %d: %s", fold.fold_index, e)
            raise ModelPredictError(f"{model_name} failed to forecast: {e}", fold_index=fold.fold_index,
                                    train_range=train_range, test_range=test_range) from e
        forecast_time = time.perf_counter() - forecast_start

        # Per-offset errors: metric(actual[s+h-1], point[h-1]) for h in 1..H
        actual = endog_test.to_numpy(dtype=float)
        errors = np.array([metric_func(actual[h - 1:h], point[h - 1:h]) for h in range(1, horizon + 1)],
                          dtype=float)

        lower = getattr(forecast, 'lower', None)
        upper = getattr(forecast, 'upper', None)
        return FoldResult(
            fold=fold,
            train_range=train_range,
            test_range=test_range,
            actuals=endog_test,
            point=point,
            errors=errors,
            lower=np.asarray(lower, dtype=float) if lower is not None else None,
            upper=np.asarray(upper, dtype=float) if upper is not None else None,
            interval_level=getattr(forecast, 'interval_level', None),
            fit_time=fit_time,
            forecast_time=forecast_time,
        )

    def _validate_series(self, series: pd.Series) -> None:
        """Validate the target series for backtesting."""
        try:
            validate_time_series(series, freq=self.config.frequency,
                                 require_regular=self.config.require_regular_index)
        except (TypeError, ValueError) as e:
            raise SeriesValidationError(str(e)) from e

    def _align_covariates(self, series: pd.Series, covariates: Optional[pd.DataFrame],
                          folds: List[Fold]) -> Optional[pd.DataFrame]:
        """Check every timestamp a fold reads has a covariate row; return rows on the series index."""
        if covariates is None:
            return None
        if covariates.index.has_duplicates:
            dupes = covariates.index[covariates.index.duplicated()].unique()
            raise CovariateAlignmentError(f"Duplicate timestamps in covariates: {list(dupes[:5])}",
                                          timestamp=dupes[0])

        # Folds together read positions [0, last test end)
        needed = series.index[:folds[-1].test_end]
        missing = find_missing_covariates(needed, covariates)
        if missing:
            first = missing[0]
            position = series.index.get_loc(first)
            fold = next(f for f in folds if position < f.test_end)
            window = "training" if position < fold.train_end else "test"
            logger.error("Covariates missing for %d timestamps; first is %s", len(missing), first)
            raise CovariateAlignmentError(
                f"No complete covariate row for {format_timestamp(first)}, "
                f"required by the {window} window ({len(missing)} timestamps missing in total)",
                timestamp=first,
                fold_index=fold.fold_index,
                train_range=fold.train_range(series.index),
                test_range=fold.test_range(series.index),
            )

        return covariates.reindex(series.index)


def run_rolling_origin_backtest(series: pd.Series,
                                model: Any,
                                metric: Union[str, MetricFunc, None] = None,
                                config: Optional[BacktestConfig] = None,
                                covariates: Optional[pd.DataFrame] = None) -> BacktestResult:
    """Convenience function to run rolling-origin backtesting.

    Parameters
    ----------
    series : pd.Series
        Target time series
    model : ForecastModel
        Model to backtest
    metric : str or callable, optional
        Per-offset error function; absolute error when None
    config : BacktestConfig, optional
        Backtesting configuration
    covariates : pd.DataFrame, optional
        Exogenous variables

    Returns
    -------
    BacktestResult
        Complete backtesting results
    """
    validator = RollingOriginValidator(config)
    return validator.validate(series, model, covariates, metric)
