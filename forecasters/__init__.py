"""Forecast model capability and its implementations.

Every model exposes ``fit(series, covariates)`` and
``predict(fitted, horizon, future_covariates)``:
- ProphetForecaster: curve decomposition with automatic seasonality
- StructuralTimeSeriesForecaster: explicit trend / seasonal / regression state space
- SarimaxForecaster: seasonal ARIMA with exogenous regressors
- MeanForecaster, LastValueForecaster: naive benchmarks
"""

from .base import (
    Forecast,
    FittedModel,
    ForecastModel,
    covariate_levels,
    encode_covariates
)

from .naive import (
    MeanForecaster,
    LastValueForecaster
)

from .prophet_model import ProphetForecaster

from .structural import (
    StructuralTimeSeriesForecaster,
    SarimaxForecaster
)

__all__ = [
    'Forecast',
    'FittedModel',
    'ForecastModel',
    'covariate_levels',
    'encode_covariates',
    'MeanForecaster',
    'LastValueForecaster',
    'ProphetForecaster',
    'StructuralTimeSeriesForecaster',
    'SarimaxForecaster'
]
