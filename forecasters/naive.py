"""Benchmark forecasters without model fitting.

These are the reference points a real model has to beat, and they are fully
deterministic, which makes them the default stubs in tests.
"""

from typing import Optional

import numpy as np
import pandas as pd
from scipy.stats import norm

from .base import FittedModel, Forecast, ForecastModel


def _z(interval_level: float) -> float:
    alpha = 1.0 - interval_level / 100.0
    return float(norm.ppf(1.0 - alpha / 2.0))


class MeanForecaster(ForecastModel):
    """Forecast the training mean for every future period.

    The interval is the mean plus/minus z times the training standard
    deviation, constant across the horizon.
    """

    name = "naive_mean"

    def __init__(self, interval_level: Optional[float] = 80):
        super().__init__(use_covariates=False)
        self.interval_level = interval_level

    def _fit(self, series, design):
        values = series.to_numpy(dtype=float)
        return {
            "mean": float(np.mean(values)),
            "std": float(np.std(values, ddof=1)) if len(values) > 1 else 0.0,
        }

    def _predict(self, fitted: FittedModel, horizon: int, design, future_index) -> Forecast:
        mean = fitted.result["mean"]
        point = np.full(horizon, mean)
        if self.interval_level is None:
            return Forecast(point=point, index=future_index)

        half_width = _z(self.interval_level) * fitted.result["std"]
        return Forecast(
            point=point,
            lower=point - half_width,
            upper=point + half_width,
            index=future_index,
            interval_level=self.interval_level,
        )


class LastValueForecaster(ForecastModel):
    """Carry the last observed value forward (random-walk benchmark).

    The interval widens with sqrt(h) using the standard deviation of the
    first differences of the training series.
    """

    name = "naive_last"

    def __init__(self, interval_level: Optional[float] = 80):
        super().__init__(use_covariates=False)
        self.interval_level = interval_level

    def _fit(self, series: pd.Series, design):
        values = series.to_numpy(dtype=float)
        diffs = np.diff(values)
        return {
            "last": float(values[-1]),
            "sigma": float(np.std(diffs, ddof=1)) if len(diffs) > 1 else 0.0,
        }

    def _predict(self, fitted: FittedModel, horizon: int, design, future_index) -> Forecast:
        point = np.full(horizon, fitted.result["last"])
        if self.interval_level is None:
            return Forecast(point=point, index=future_index)

        steps = np.sqrt(np.arange(1, horizon + 1))
        half_width = _z(self.interval_level) * fitted.result["sigma"] * steps
        return Forecast(
            point=point,
            lower=point - half_width,
            upper=point + half_width,
            index=future_index,
            interval_level=self.interval_level,
        )
