"""Rolling-origin backtesting for time series forecasting models.

This package provides expanding-window backtesting including:
- Rolling-origin fold generation with strict out-of-sample test windows
- Covariate alignment checks before any model is fitted
- Per-horizon error aggregation into a ScoreTable
- Multi-model comparison over identical folds
- A fold-annotated error taxonomy
"""

from .exceptions import (
    BacktestError,
    InsufficientDataError,
    CovariateAlignmentError,
    ModelFitError,
    ModelPredictError,
    SeriesValidationError
)

from .metrics_aggregation import (
    AggregationMethod,
    ScoreTable,
    aggregate_errors,
    aggregate_fold_errors,
    create_performance_summary
)

from .rolling_origin import (
    RollingOriginValidator,
    BacktestResult,
    FoldResult,
    Fold,
    BacktestConfig,
    generate_fold_starts,
    run_rolling_origin_backtest
)

from .evaluation_pipeline import (
    BacktestingPipeline,
    ModelComparison,
    run_model_comparison
)

__all__ = [
    # Errors
    'BacktestError',
    'InsufficientDataError',
    'CovariateAlignmentError',
    'ModelFitError',
    'ModelPredictError',
    'SeriesValidationError',

    # Core backtesting
    'RollingOriginValidator',
    'BacktestResult',
    'FoldResult',
    'Fold',
    'BacktestConfig',
    'generate_fold_starts',
    'run_rolling_origin_backtest',

    # Metrics aggregation
    'AggregationMethod',
    'ScoreTable',
    'aggregate_errors',
    'aggregate_fold_errors',
    'create_performance_summary',

    # Pipeline
    'BacktestingPipeline',
    'ModelComparison',
    'run_model_comparison'
]

# Version info
__version__ = '1.0.0'
