import math

import numpy as np
import pandas as pd
import pytest

from backtest_src.metrics_utils import (
    ZeroActualError,
    absolute_error,
    compare_forecasts,
    diebold_mariano,
    get_metric,
    mae,
    mape,
    mape_eps,
    mape_epsilon_from_train,
    rmse,
    smape,
    squared_error,
)


def test_absolute_error_single_pair():
    assert absolute_error([10.0], [7.5]) == 2.5
    assert absolute_error is mae


def test_mae_rmse_squared_error():
    y = [1.0, 2.0, 3.0]
    yhat = [1.0, 2.0, 5.0]
    assert mae(y, yhat) == pytest.approx(2.0 / 3.0)
    assert squared_error(y, yhat) == pytest.approx(4.0 / 3.0)
    assert rmse(y, yhat) == pytest.approx(math.sqrt(4.0 / 3.0))


def test_mape_percent():
    assert mape([100.0, 200.0], [110.0, 180.0]) == pytest.approx(10.0)


def test_mape_zero_actual_raises():
    with pytest.raises(ZeroActualError, match="position 1"):
        mape([5.0, 0.0, 2.0], [5.0, 1.0, 2.0])
    # Usable wherever a ZeroDivisionError is expected
    with pytest.raises(ZeroDivisionError):
        mape([0.0], [1.0])


def test_mape_eps_is_finite_with_zero_actual():
    value = mape_eps([0.0, 10.0], [1.0, 10.0], eps=0.5)
    assert value == pytest.approx(100.0)
    assert math.isfinite(value)


def test_mape_epsilon_from_train():
    train = np.arange(1.0, 101.0)
    assert mape_epsilon_from_train(train) == pytest.approx(np.percentile(train, 10.0))
    assert mape_epsilon_from_train([0.0, 0.0]) == 1e-8
    assert mape_epsilon_from_train([np.nan]) == 1e-8


def test_smape():
    assert smape([100.0], [110.0]) == pytest.approx(2 * 10 / 210 * 100)
    assert smape([0.0], [0.0]) == 0.0


def test_nan_inputs_produce_nan():
    assert math.isnan(mae([1.0, np.nan], [1.0, 2.0]))


@pytest.mark.parametrize("metric", [mae, rmse, mape, smape])
def test_empty_or_unequal_inputs_rejected(metric):
    with pytest.raises(ValueError):
        metric([], [])
    with pytest.raises(ValueError):
        metric([1.0, 2.0], [1.0])


def test_get_metric():
    assert get_metric("MAE") is mae
    assert get_metric(" rmse ") is rmse
    assert get_metric("mse") is squared_error
    custom = lambda a, p: 0.0  # noqa: E731
    assert get_metric(custom) is custom
    with pytest.raises(ValueError, match="Unknown metric"):
        get_metric("r2")


def test_compare_forecasts_table():
    actual = [100.0, 110.0, 120.0]
    table = compare_forecasts(actual, {
        "perfect": [100.0, 110.0, 120.0],
        "off_by_ten": [110.0, 120.0, 130.0],
    })

    assert list(table.index) == ["perfect", "off_by_ten"]
    assert list(table.columns) == ["RMSE", "MAE", "MAPE"]
    assert table.loc["perfect"].tolist() == [0.0, 0.0, 0.0]
    assert table.loc["off_by_ten", "MAE"] == pytest.approx(10.0)
    assert table.loc["off_by_ten", "RMSE"] == pytest.approx(10.0)
    expected_mape = np.mean([10 / 100, 10 / 110, 10 / 120]) * 100
    assert table.loc["off_by_ten", "MAPE"] == pytest.approx(expected_mape)


def test_compare_forecasts_zero_actual():
    with pytest.raises(ZeroActualError):
        compare_forecasts([0.0, 1.0], {"a": [1.0, 1.0]})
    table = compare_forecasts([0.0, 1.0], {"a": [1.0, 1.0]}, mape_epsilon=1.0)
    assert table.loc["a", "MAPE"] == pytest.approx(50.0)


def test_diebold_mariano_prefers_more_accurate_forecast():
    rng = np.random.default_rng(5)
    y = pd.Series(rng.normal(100, 5, 120))
    good = y + rng.normal(0, 0.1, 120)
    bad = y + rng.normal(0, 2.0, 120)

    stat, p_value = diebold_mariano(y, good, bad)
    assert stat < 0
    assert p_value < 0.01

    stat_rev, _ = diebold_mariano(y, bad, good)
    assert stat_rev == pytest.approx(-stat)


def test_diebold_mariano_degenerate_cases():
    y = [1.0, 2.0, 3.0, 4.0]
    stat, p_value = diebold_mariano(y, y, y)
    assert math.isnan(stat) and math.isnan(p_value)

    stat, p_value = diebold_mariano([1.0, 2.0], [1.0, 2.5], [1.5, 2.0])
    assert math.isnan(stat) and math.isnan(p_value)
