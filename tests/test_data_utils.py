import numpy as np
import pandas as pd
import pytest

from backtest_src.data_utils import load_covariates_csv, load_series_csv
from backtest_src.parsing_utils import parse_column_list, parse_intervals_arg, parse_model_list


def write_csv(path, frame):
    frame.to_csv(path, index=False)
    return path


def test_load_series_sorts_and_sets_frequency(tmp_path):
    dates = pd.date_range("2022-01-02", periods=6, freq="W-SUN")
    frame = pd.DataFrame({"week": dates.strftime("%Y-%m-%d"), "units": np.arange(6.0)})
    path = write_csv(tmp_path / "s.csv", frame.iloc[::-1])

    series = load_series_csv(path, date_column="week", value_column="units")
    assert series.index.is_monotonic_increasing
    assert series.index.freqstr == "W-SUN"
    assert series.name == "units"
    assert series.tolist() == list(np.arange(6.0))


def test_load_series_drops_bad_rows(tmp_path):
    frame = pd.DataFrame({
        "date": ["2022-01-02", "not a date", "2022-01-16", "2022-01-23"],
        "value": ["1.5", "2.0", "n/a", "4.0"],
    })
    series = load_series_csv(write_csv(tmp_path / "s.csv", frame))
    assert series.tolist() == [1.5, 4.0]


def test_load_series_resamples_daily_to_weekly(tmp_path):
    dates = pd.date_range("2022-01-03", periods=14, freq="D")
    frame = pd.DataFrame({"date": dates.strftime("%Y-%m-%d"), "value": np.ones(14)})
    series = load_series_csv(write_csv(tmp_path / "d.csv", frame), freq="W", how="sum")

    assert len(series) == 2
    assert series.tolist() == [7.0, 7.0]


@pytest.mark.parametrize("frame", [
    pd.DataFrame({"when": ["2022-01-02"], "value": [1.0]}),
    pd.DataFrame({"date": ["2022-01-02"], "amount": [1.0]}),
    pd.DataFrame({"date": ["2022-01-02"], "value": ["x"]}),
])
def test_load_series_rejects_unusable_files(tmp_path, frame):
    with pytest.raises(SystemExit):
        load_series_csv(write_csv(tmp_path / "s.csv", frame))


def test_load_series_missing_file(tmp_path):
    with pytest.raises(SystemExit, match="not found"):
        load_series_csv(tmp_path / "absent.csv")


def test_load_covariates_types(tmp_path):
    frame = pd.DataFrame({
        "date": ["2022-01-02", "2022-01-09", "2022-01-16"],
        "price": [9.5, 10.0, 10.5],
        "promo": ["yes", "no", "yes"],
        "store": [1, 2, 1],
    })
    path = write_csv(tmp_path / "c.csv", frame)

    covariates = load_covariates_csv(path, categorical=["store"])
    assert list(covariates.columns) == ["price", "promo", "store"]
    assert covariates["price"].dtype == float
    assert isinstance(covariates["promo"].dtype, pd.CategoricalDtype)
    assert isinstance(covariates["store"].dtype, pd.CategoricalDtype)
    assert covariates.index[0] == pd.Timestamp("2022-01-02")

    subset = load_covariates_csv(path, columns=["price"])
    assert list(subset.columns) == ["price"]
    with pytest.raises(SystemExit, match="missing columns"):
        load_covariates_csv(path, columns=["weather"])


def test_parse_model_list():
    assert parse_model_list(["Prophet, structural", "naive_mean", "prophet"]) == [
        "prophet", "structural", "naive_mean"]
    assert parse_model_list(None) == ["prophet", "structural"]


def test_parse_intervals_arg():
    assert parse_intervals_arg("95, 80,80") == [80, 95]
    assert parse_intervals_arg(None) == [80, 95]
    with pytest.raises(ValueError):
        parse_intervals_arg("0,50")
    with pytest.raises(ValueError):
        parse_intervals_arg("ninety")


def test_parse_column_list():
    assert parse_column_list("a, b,,c") == ["a", "b", "c"]
    assert parse_column_list("") is None
    assert parse_column_list(" , ") is None
