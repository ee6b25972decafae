# backtest_src/metrics_utils.py

import math
import numpy as np
import pandas as pd
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union
import logging

from scipy.stats import norm

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]
Metric = Callable[[ArrayLike, ArrayLike], float]


class ZeroActualError(ZeroDivisionError):
    """Raised by strict MAPE when an actual value is zero."""


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to a 1D float numpy array.

    Non-finite values are kept so that degenerate inputs surface as NaN
    results instead of being silently dropped.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D float array
    """
    return np.asarray(x, dtype=float).ravel()


def _paired(y_true: ArrayLike, y_hat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Convert and check that both inputs are non-empty and equal length."""
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0 or yh.size == 0:
        raise ValueError("Metric inputs must be non-empty")
    if yt.size != yh.size:
        raise ValueError(f"Metric inputs must have equal length, got {yt.size} and {yh.size}")
    return yt, yh


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    For a single pair this is the plain absolute residual, which is the
    per-horizon-offset error used by the backtest harness.

    Returns
    -------
    float
        Mean absolute error
    """
    yt, yh = _paired(y_true, y_hat)
    return float(np.mean(np.abs(yh - yt)))


absolute_error = mae


def squared_error(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean squared error (squared residual for a single pair)."""
    yt, yh = _paired(y_true, y_hat)
    return float(np.mean((yh - yt) ** 2))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    RMSE penalizes large errors more heavily than MAE, making it useful when
    large errors are particularly undesirable.
    """
    return float(math.sqrt(squared_error(y_true, y_hat)))


def mape(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Percentage Error (percent).

    Parameters
    ----------
    y_true : array-like
        Actual values; the denominator of each term
    y_hat : array-like
        Predicted values

    Returns
    -------
    float
        MAPE as percentage (0-100+)

    Raises
    ------
    ZeroActualError
        If any actual value is exactly zero. Use ``mape_eps`` for a
        stabilized denominator instead.
    """
    yt, yh = _paired(y_true, y_hat)
    zero = yt == 0.0
    if np.any(zero):
        position = int(np.flatnonzero(zero)[0])
        raise ZeroActualError(f"MAPE is undefined: actual value at position {position} is zero")
    return float(np.mean(np.abs((yh - yt) / yt)) * 100.0)


def mape_epsilon_from_train(y_train: ArrayLike) -> float:
    """
    Calculate epsilon value for stabilized MAPE computation from training data.

    Uses the 10th percentile of absolute finite training values, never less
    than 1e-8.
    """
    arr = to_1d_array(y_train)
    arr = arr[np.isfinite(arr)]
    if arr.size == 0:
        return 1e-8
    return float(max(1e-8, np.percentile(np.abs(arr), 10.0)))


def mape_eps(y_true: ArrayLike, y_hat: ArrayLike, eps: float) -> float:
    """
    Calculate Mean Absolute Percentage Error with epsilon stabilization.

    The denominator of each term is ``max(|actual|, eps)``, so zero actuals
    produce large but finite terms.

    Returns
    -------
    float
        MAPE as percentage (0-100+)
    """
    yt, yh = _paired(y_true, y_hat)
    denom = np.maximum(np.abs(yt), eps)
    return float(np.mean(np.abs(yh - yt) / denom) * 100.0)


def smape(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-12) -> float:
    """
    Calculate Symmetric Mean Absolute Percentage Error.

    Returns
    -------
    float
        sMAPE as percentage (0-200)
    """
    yt, yh = _paired(y_true, y_hat)
    denom = np.maximum(np.abs(yt) + np.abs(yh), eps)
    return float(np.mean(2.0 * np.abs(yh - yt) / denom) * 100.0)


def dm_newey_west_var(d: np.ndarray, h: int) -> float:
    """
    Calculate Newey-West variance estimator for Diebold-Mariano test.

    This function estimates the long-run variance of the loss differential series
    using the Newey-West HAC (Heteroskedasticity and Autocorrelation Consistent) estimator.

    Parameters
    ----------
    d : np.ndarray
        Array of loss differentials
    h : int
        Forecast horizon

    Returns
    -------
    float
        Variance estimate, or NaN if computation fails
    """
    n = len(d)
    if n < 3:
        return float("nan")

    dbar = float(np.mean(d))
    e = d - dbar
    L = max(0, int(h) - 1)

    gamma0 = float(np.mean(e * e))
    s_hat = gamma0
    for k in range(1, L + 1):
        cov = float(np.mean(e[k:] * e[:-k]))
        w = 1.0 - (k / (L + 1.0))
        s_hat += 2.0 * w * cov

    var_dbar = s_hat / n
    return float(var_dbar) if var_dbar > 0.0 else float("nan")


def diebold_mariano(y_true: ArrayLike, y_hat1: ArrayLike, y_hat2: ArrayLike,
                    h: int = 1, power: int = 2) -> Tuple[float, float]:
    """
    Perform the Diebold-Mariano test for predictive accuracy.

    Parameters
    ----------
    y_true : array-like
        True values
    y_hat1 : array-like
        Predictions from first method
    y_hat2 : array-like
        Predictions from second method
    h : int, default=1
        Forecast horizon for variance adjustment
    power : int, default=2
        Power for loss function (1=absolute, 2=squared)

    Returns
    -------
    tuple[float, float]
        (test_statistic, p_value), both NaN if test cannot be performed

    Notes
    -----
    Null hypothesis: both methods have equal predictive accuracy.
    A negative statistic means method 1 has the lower loss.
    """
    yt, y1 = _paired(y_true, y_hat1)
    _, y2 = _paired(y_true, y_hat2)
    if yt.size < 3:
        return float("nan"), float("nan")

    e1 = y1 - yt
    e2 = y2 - yt
    if power == 1:
        d = np.abs(e1) - np.abs(e2)
    else:
        d = e1 ** 2 - e2 ** 2

    var_dbar = dm_newey_west_var(d, h=h)
    if not np.isfinite(var_dbar) or var_dbar <= 0.0:
        return float("nan"), float("nan")

    dm_t = float(np.mean(d)) / math.sqrt(var_dbar)
    p = 2.0 * (1.0 - norm.cdf(abs(dm_t)))
    return float(dm_t), float(min(max(p, 0.0), 1.0))


METRICS: Dict[str, Metric] = {
    "mae": mae,
    "absolute_error": absolute_error,
    "squared_error": squared_error,
    "mse": squared_error,
    "rmse": rmse,
    "mape": mape,
    "smape": smape,
}


def get_metric(name: Union[str, Metric]) -> Metric:
    """
    Resolve a metric by name; callables are returned unchanged.

    Raises
    ------
    ValueError
        If the name is unknown
    """
    if callable(name):
        return name
    key = str(name).strip().lower()
    if key not in METRICS:
        raise ValueError(f"Unknown metric '{name}', expected one of {sorted(METRICS)}")
    return METRICS[key]


def compare_forecasts(y_true: ArrayLike,
                      forecasts: Mapping[str, ArrayLike],
                      mape_epsilon: Optional[float] = None) -> pd.DataFrame:
    """
    Score several held-out forecasts of the same actuals.

    Parameters
    ----------
    y_true : array-like
        Held-out actual values
    forecasts : Mapping[str, array-like]
        Model name -> forecast vector aligned with ``y_true``
    mape_epsilon : float, optional
        If given, MAPE uses ``mape_eps`` with this epsilon; otherwise strict
        MAPE is used and a zero actual raises ZeroActualError

    Returns
    -------
    pd.DataFrame
        One row per model with columns RMSE, MAE, MAPE
    """
    if not forecasts:
        raise ValueError("No forecasts to compare")

    rows = []
    for name, y_hat in forecasts.items():
        if mape_epsilon is None:
            pct = mape(y_true, y_hat)
        else:
            pct = mape_eps(y_true, y_hat, mape_epsilon)
        rows.append({
            "model": name,
            "RMSE": rmse(y_true, y_hat),
            "MAE": mae(y_true, y_hat),
            "MAPE": pct,
        })
    return pd.DataFrame(rows).set_index("model")
