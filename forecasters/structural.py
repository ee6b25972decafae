"""State-space forecasters built on statsmodels.

``StructuralTimeSeriesForecaster`` decomposes the series into explicit trend,
seasonal and regression components (an unobserved components model, the
state-space form of a Bayesian structural time series). Parameters are
estimated by maximum likelihood with the Kalman filter.

``SarimaxForecaster`` wraps the seasonal ARIMA model with exogenous
regressors.
"""

import logging
import warnings
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.statespace.sarimax import SARIMAX
from statsmodels.tsa.statespace.structural import UnobservedComponents

from backtesting.exceptions import ModelFitError

from .base import FittedModel, Forecast, ForecastModel

logger = logging.getLogger(__name__)


def _fit_state_space(name: str, model, maxiter: int, require_convergence: bool, **fit_kwargs):
    """Fit a statsmodels state-space model and enforce convergence if requested."""
    with warnings.catch_warnings():
        # convergence is checked explicitly below
        warnings.simplefilter("ignore", ConvergenceWarning)
        result = model.fit(disp=False, maxiter=maxiter, **fit_kwargs)

    converged = bool(result.mle_retvals.get("converged", True)) if result.mle_retvals else True
    if not converged:
        if require_convergence:
            raise ModelFitError(f"{name}: maximum likelihood optimization did not converge in {maxiter} iterations")
        logger.warning("%s: optimizer did not converge in %d iterations", name, maxiter)
    return result


def _state_space_forecast(result, horizon: int, design: Optional[pd.DataFrame],
                          interval_level: Optional[float], future_index) -> Forecast:
    exog = design.to_numpy(dtype=float) if design is not None else None
    fc = result.get_forecast(steps=horizon, exog=exog)
    point = np.asarray(fc.predicted_mean, dtype=float)

    if interval_level is None:
        return Forecast(point=point, index=future_index)

    alpha = 1.0 - (interval_level / 100.0)
    ci = np.asarray(fc.conf_int(alpha=alpha), dtype=float)
    return Forecast(
        point=point,
        lower=ci[:, 0],
        upper=ci[:, 1],
        index=future_index,
        interval_level=interval_level,
    )


class StructuralTimeSeriesForecaster(ForecastModel):
    """Trend + seasonal + regression state-space model.

    Parameters
    ----------
    level : str
        statsmodels trend specification, e.g. "local level" or
        "local linear trend"
    seasonal_period : float, optional
        Period of the trigonometric seasonal component (52.18 for weekly data
        with yearly seasonality). None disables seasonality.
    harmonics : int
        Number of Fourier pairs in the seasonal component
    interval_level : float, optional
        Coverage of the returned prediction interval in percent
    maxiter : int
        Optimizer iteration limit
    require_convergence : bool
        Raise ModelFitError when the optimizer reports non-convergence
    use_covariates : bool
        Whether covariates enter as a regression component
    """

    name = "structural"

    def __init__(self,
                 level: str = "local linear trend",
                 seasonal_period: Optional[float] = 52.18,
                 harmonics: int = 3,
                 interval_level: Optional[float] = 80,
                 maxiter: int = 200,
                 require_convergence: bool = True,
                 use_covariates: bool = True):
        super().__init__(use_covariates=use_covariates)
        if seasonal_period is not None and harmonics > int(seasonal_period // 2):
            raise ValueError(f"harmonics must be at most {int(seasonal_period // 2)} for period {seasonal_period}")
        self.level = level
        self.seasonal_period = seasonal_period
        self.harmonics = harmonics
        self.interval_level = interval_level
        self.maxiter = maxiter
        self.require_convergence = require_convergence

    def _fit(self, series: pd.Series, design: Optional[pd.DataFrame]):
        freq_seasonal = None
        if self.seasonal_period is not None:
            freq_seasonal = [{"period": self.seasonal_period, "harmonics": self.harmonics}]

        model = UnobservedComponents(
            series.to_numpy(dtype=float),
            level=self.level,
            freq_seasonal=freq_seasonal,
            exog=design.to_numpy(dtype=float) if design is not None else None,
        )
        return _fit_state_space(self.name, model, self.maxiter, self.require_convergence)

    def _predict(self, fitted: FittedModel, horizon: int, design, future_index) -> Forecast:
        return _state_space_forecast(fitted.result, horizon, design, self.interval_level, future_index)


class SarimaxForecaster(ForecastModel):
    """Seasonal ARIMA with exogenous regressors.

    Parameters
    ----------
    order : tuple
        SARIMAX order (p, d, q)
    seasonal_order : tuple
        Seasonal order (P, D, Q, s)
    trend : str, optional
        statsmodels trend term ("c", "t", "ct") or None
    robust_errors : bool
        Use robust standard errors for the parameter covariance
    """

    name = "sarimax"

    def __init__(self,
                 order: Sequence[int] = (1, 1, 1),
                 seasonal_order: Sequence[int] = (0, 0, 0, 0),
                 trend: Optional[str] = None,
                 interval_level: Optional[float] = 80,
                 maxiter: int = 200,
                 require_convergence: bool = True,
                 robust_errors: bool = False,
                 use_covariates: bool = True):
        super().__init__(use_covariates=use_covariates)
        self.order: Tuple[int, int, int] = tuple(order)
        self.seasonal_order: Tuple[int, int, int, int] = tuple(seasonal_order)
        self.trend = trend
        self.interval_level = interval_level
        self.maxiter = maxiter
        self.require_convergence = require_convergence
        self.robust_errors = robust_errors

    def _fit(self, series: pd.Series, design: Optional[pd.DataFrame]):
        model = SARIMAX(
            series.to_numpy(dtype=float),
            exog=design.to_numpy(dtype=float) if design is not None else None,
            order=self.order,
            seasonal_order=self.seasonal_order,
            trend=self.trend,
            simple_differencing=False,
        )
        fit_kwargs = {"cov_type": "robust"} if self.robust_errors else {}
        return _fit_state_space(self.name, model, self.maxiter, self.require_convergence, **fit_kwargs)

    def _predict(self, fitted: FittedModel, horizon: int, design, future_index) -> Forecast:
        return _state_space_forecast(fitted.result, horizon, design, self.interval_level, future_index)
