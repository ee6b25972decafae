"""Forecast model capability shared by every forecasting technique.

A model is used in two steps:

    fitted = model.fit(train_series, train_covariates)
    forecast = model.predict(fitted, horizon, future_covariates)

Subclasses implement ``_fit`` and ``_predict`` against their library. The
public methods validate shapes, one-hot encode categorical covariates, and
convert library failures into ``ModelFitError`` / ``ModelPredictError`` so
callers see one error type per step.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from backtesting.exceptions import ModelFitError, ModelPredictError

logger = logging.getLogger(__name__)


@dataclass
class Forecast:
    """Point forecast with an optional prediction interval."""

    point: np.ndarray
    lower: Optional[np.ndarray] = None
    upper: Optional[np.ndarray] = None
    index: Optional[pd.Index] = None
    interval_level: Optional[float] = None  # percent, e.g. 80

    def __post_init__(self):
        self.point = np.asarray(self.point, dtype=float).ravel()
        if (self.lower is None) != (self.upper is None):
            raise ValueError("lower and upper bounds must be given together")
        if self.lower is not None:
            self.lower = np.asarray(self.lower, dtype=float).ravel()
            self.upper = np.asarray(self.upper, dtype=float).ravel()
            if len(self.lower) != len(self.point) or len(self.upper) != len(self.point):
                raise ValueError("Interval bounds must have the same length as the point forecast")
        if self.index is not None and len(self.index) != len(self.point):
            raise ValueError("Forecast index must have the same length as the point forecast")

    @property
    def horizon(self) -> int:
        return len(self.point)

    @property
    def has_interval(self) -> bool:
        return self.lower is not None

    def to_frame(self) -> pd.DataFrame:
        data = {"point": self.point}
        if self.has_interval:
            data["lower"] = self.lower
            data["upper"] = self.upper
        index = self.index if self.index is not None else pd.RangeIndex(1, self.horizon + 1, name="horizon_offset")
        return pd.DataFrame(data, index=index)


@dataclass
class FittedModel:
    """Handle returned by ``ForecastModel.fit``."""

    model_name: str
    result: Any
    train_index: pd.Index
    covariate_columns: Optional[List[str]] = None
    covariate_levels: Dict[str, List[Any]] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def n_obs(self) -> int:
        return len(self.train_index)

    @property
    def uses_covariates(self) -> bool:
        return self.covariate_columns is not None

    def future_index(self, horizon: int, future_covariates: Optional[pd.DataFrame] = None) -> Optional[pd.DatetimeIndex]:
        """Timestamps of the forecast periods, or None if they cannot be derived."""
        if future_covariates is not None:
            return pd.DatetimeIndex(future_covariates.index)
        if not isinstance(self.train_index, pd.DatetimeIndex):
            return None

        freq = self.train_index.freq
        if freq is None and len(self.train_index) >= 3:
            freq = pd.infer_freq(self.train_index)
        if freq is None:
            return None
        return pd.date_range(self.train_index[-1], periods=horizon + 1, freq=freq)[1:]


def covariate_levels(covariates: pd.DataFrame) -> Dict[str, List[Any]]:
    """Levels of each non-numeric covariate column, in the order ``get_dummies`` sees them."""
    levels: Dict[str, List[Any]] = {}
    for column in covariates.columns:
        values = covariates[column]
        if isinstance(values.dtype, pd.CategoricalDtype):
            levels[column] = list(values.cat.categories)
        elif not pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
            levels[column] = sorted(values.dropna().unique().tolist())
    return levels


def encode_covariates(covariates: pd.DataFrame, columns: Optional[List[str]] = None,
                      levels: Optional[Dict[str, List[Any]]] = None) -> pd.DataFrame:
    """
    Turn a covariate frame into a float design matrix.

    Categorical and string columns are one-hot encoded with the first level
    dropped. ``levels`` (from ``covariate_levels`` on the training frame)
    fixes the level set of each column, so a future window holding only some
    levels drops the same baseline as training did. Levels never seen in
    training fall back to the baseline (all indicators zero). When
    ``columns`` (the training design columns) is given, the result is
    reindexed to it.
    """
    if levels:
        covariates = covariates.copy()
        for column, categories in levels.items():
            if column in covariates.columns:
                covariates[column] = pd.Categorical(covariates[column].astype(object), categories=categories)
    frame = pd.get_dummies(covariates, drop_first=True, dtype=float)
    if columns is not None:
        frame = frame.reindex(columns=columns, fill_value=0.0)
    return frame.astype(float)


class ForecastModel(ABC):
    """Base class for forecasting techniques.

    Attributes
    ----------
    name : str
        Label used in logs and comparison tables
    requires_covariates : bool
        Whether fitting without covariates is an error
    max_horizon : int, optional
        Longest forecast the model supports
    use_covariates : bool
        Whether covariates passed to ``fit`` are used as regressors
    """

    name: str = "model"
    requires_covariates: bool = False
    max_horizon: Optional[int] = None

    def __init__(self, use_covariates: bool = True):
        self.use_covariates = use_covariates

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    def fit(self, series: pd.Series, covariates: Optional[pd.DataFrame] = None) -> FittedModel:
        """Fit the model to a training window.

        Parameters
        ----------
        series : pd.Series
            Training target values
        covariates : pd.DataFrame, optional
            Covariate rows aligned 1:1 with ``series``

        Returns
        -------
        FittedModel
            Handle to pass to ``predict``

        Raises
        ------
        ModelFitError
            On invalid input shape or any failure inside the model library
        """
        if series is None or len(series) == 0:
            raise ModelFitError(f"{self.name}: training series is empty")
        if self.requires_covariates and covariates is None:
            raise ModelFitError(f"{self.name}: covariates are required for fitting")

        design = None
        levels: Dict[str, List[Any]] = {}
        if covariates is not None and self.use_covariates:
            if len(covariates) != len(series):
                raise ModelFitError(
                    f"{self.name}: covariates have {len(covariates)} rows but the series has {len(series)}")
            levels = covariate_levels(covariates)
            design = encode_covariates(covariates, levels=levels)
            if design.shape[1] == 0:
                design = None

        try:
            result = self._fit(series, design)
        except ModelFitError:
            raise
        except Exception as e:
            raise ModelFitError(f"{self.name} failed to fit on {len(series)} observations: {e}") from e

        logger.debug("%s fitted on %d observations", self.name, len(series))
        return FittedModel(
            model_name=self.name,
            result=result,
            train_index=series.index,
            covariate_columns=list(design.columns) if design is not None else None,
            covariate_levels=levels if design is not None else {},
        )

    def predict(self, fitted: FittedModel, horizon: int,
                future_covariates: Optional[pd.DataFrame] = None) -> Forecast:
        """Forecast ``horizon`` periods past the end of the training window.

        Raises
        ------
        ModelPredictError
            If the horizon is invalid or unsupported, covariates the fit used
            are missing, or the model library fails
        """
        if horizon <= 0:
            raise ModelPredictError(f"{self.name}: horizon must be positive, got {horizon}")
        if self.max_horizon is not None and horizon > self.max_horizon:
            raise ModelPredictError(
                f"{self.name}: horizon {horizon} exceeds the supported maximum of {self.max_horizon}")

        design = None
        if fitted.uses_covariates:
            if future_covariates is None:
                raise ModelPredictError(f"{self.name}: future covariates are required for prediction")
            if len(future_covariates) != horizon:
                raise ModelPredictError(
                    f"{self.name}: expected {horizon} future covariate rows, got {len(future_covariates)}")
            design = encode_covariates(future_covariates, fitted.covariate_columns, fitted.covariate_levels)

        future_index = fitted.future_index(horizon, future_covariates)

        try:
            forecast = self._predict(fitted, horizon, design, future_index)
        except ModelPredictError:
            raise
        except Exception as e:
            raise ModelPredictError(f"{self.name} failed to forecast {horizon} periods: {e}") from e

        if forecast.horizon != horizon:
            raise ModelPredictError(
                f"{self.name}: produced {forecast.horizon} forecasts for a horizon of {horizon}")
        if forecast.index is None and future_index is not None:
            forecast.index = future_index
        return forecast

    @abstractmethod
    def _fit(self, series: pd.Series, design: Optional[pd.DataFrame]) -> Any:
        """Fit the underlying library model and return its result object."""

    @abstractmethod
    def _predict(self, fitted: FittedModel, horizon: int,
                 design: Optional[pd.DataFrame],
                 future_index: Optional[pd.DatetimeIndex]) -> Forecast:
        """Produce the forecast from a fitted result."""
