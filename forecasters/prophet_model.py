"""Prophet forecaster (curve decomposition with automatic seasonality).

Prophet fits a piecewise-linear trend with changepoints plus Fourier
seasonalities; covariates enter as extra linear regressors.
"""

import logging
from typing import Optional

import pandas as pd

from backtesting.exceptions import ModelPredictError

from .base import FittedModel, Forecast, ForecastModel

logger = logging.getLogger(__name__)


class ProphetForecaster(ForecastModel):
    """Prophet with optional exogenous regressors.

    Parameters
    ----------
    yearly_seasonality, weekly_seasonality, daily_seasonality : bool or "auto"
        Prophet seasonality switches. Weekly observations carry no
        within-week pattern, so weekly seasonality is off by default.
    changepoint_prior_scale : float
        Flexibility of the trend at changepoints
    seasonality_prior_scale : float
        Strength of the seasonal components
    interval_width : float
        Coverage of the uncertainty interval (0.8 = 80%)
    uncertainty_samples : int
        Posterior draws used for the interval
    """

    name = "prophet"

    def __init__(self,
                 yearly_seasonality=True,
                 weekly_seasonality=False,
                 daily_seasonality=False,
                 changepoint_prior_scale: float = 0.05,
                 seasonality_prior_scale: float = 10.0,
                 interval_width: float = 0.8,
                 uncertainty_samples: int = 1000,
                 use_covariates: bool = True):
        super().__init__(use_covariates=use_covariates)
        self.yearly_seasonality = yearly_seasonality
        self.weekly_seasonality = weekly_seasonality
        self.daily_seasonality = daily_seasonality
        self.changepoint_prior_scale = changepoint_prior_scale
        self.seasonality_prior_scale = seasonality_prior_scale
        self.interval_width = interval_width
        self.uncertainty_samples = uncertainty_samples

    def _build(self):
        # prophet pulls in cmdstanpy; import on first use
        from prophet import Prophet

        return Prophet(
            yearly_seasonality=self.yearly_seasonality,
            weekly_seasonality=self.weekly_seasonality,
            daily_seasonality=self.daily_seasonality,
            changepoint_prior_scale=self.changepoint_prior_scale,
            seasonality_prior_scale=self.seasonality_prior_scale,
            interval_width=self.interval_width,
            uncertainty_samples=self.uncertainty_samples,
        )

    def _fit(self, series: pd.Series, design: Optional[pd.DataFrame]):
        # Prophet needs 'ds' and 'y' columns
        frame = pd.DataFrame({
            "ds": pd.DatetimeIndex(series.index).tz_localize(None),
            "y": series.to_numpy(dtype=float),
        })

        model = self._build()
        if design is not None:
            for column in design.columns:
                frame[column] = design[column].to_numpy()
                model.add_regressor(column)

        model.fit(frame)
        return model

    def _predict(self, fitted: FittedModel, horizon: int, design, future_index) -> Forecast:
        if future_index is None:
            raise ModelPredictError(f"{self.name}: cannot derive forecast dates from the training index")

        future = pd.DataFrame({"ds": pd.DatetimeIndex(future_index).tz_localize(None)})
        if design is not None:
            for column in design.columns:
                future[column] = design[column].to_numpy()

        out = fitted.result.predict(future)
        return Forecast(
            point=out["yhat"].to_numpy(),
            lower=out["yhat_lower"].to_numpy(),
            upper=out["yhat_upper"].to_numpy(),
            index=future_index,
            interval_level=self.interval_width * 100.0,
        )
