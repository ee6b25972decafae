# backtest_src/forecasting_utils.py

import logging
from typing import Any, Dict, Iterable, Optional

from forecasters import (
    ForecastModel,
    LastValueForecaster,
    MeanForecaster,
    ProphetForecaster,
    SarimaxForecaster,
    StructuralTimeSeriesForecaster,
)

logger = logging.getLogger(__name__)

MODEL_CLASSES = {
    "prophet": ProphetForecaster,
    "structural": StructuralTimeSeriesForecaster,
    "sarimax": SarimaxForecaster,
    "naive_mean": MeanForecaster,
    "naive_last": LastValueForecaster,
}

# Benchmarks never take regressors
_NO_COVARIATES = ("naive_mean", "naive_last")

_TUPLE_PARAMS = ("order", "seasonal_order")


def create_model(name: str, **params: Any) -> ForecastModel:
    """
    Build a forecast model from its configuration name and parameters.

    Parameters
    ----------
    name : str
        One of prophet, structural, sarimax, naive_mean, naive_last
    **params
        Constructor arguments, typically the ``models.<name>`` config section

    Returns
    -------
    ForecastModel
        Unfitted model instance

    Raises
    ------
    ValueError
        If the name is unknown or a parameter is not accepted by the model
    """
    key = name.strip().lower()
    if key not in MODEL_CLASSES:
        raise ValueError(f"Unknown model '{name}'. Must be one of: {sorted(MODEL_CLASSES)}")

    kwargs = dict(params)
    if key in _NO_COVARIATES:
        kwargs.pop("use_covariates", None)
    for param in _TUPLE_PARAMS:
        if kwargs.get(param) is not None:
            kwargs[param] = tuple(int(v) for v in kwargs[param])

    try:
        model = MODEL_CLASSES[key](**kwargs)
    except TypeError as e:
        raise ValueError(f"Invalid parameters for model '{name}': {e}") from e

    logger.debug("Created %s with %s", model, kwargs)
    return model


def create_models_from_config(names: Iterable[str], config_manager: Optional[Any] = None,
                              use_covariates: bool = True) -> Dict[str, ForecastModel]:
    """
    Build several models, reading each model's parameters from ``models.<name>``.

    Returns
    -------
    Dict[str, ForecastModel]
        Model name -> model, in the order given
    """
    models: Dict[str, ForecastModel] = {}
    for name in names:
        params = config_manager.get_model_config(name) if config_manager is not None else {}
        if not use_covariates:
            params["use_covariates"] = False
        models[name] = create_model(name, **params)
    if not models:
        raise ValueError("At least one model name is required")
    return models
