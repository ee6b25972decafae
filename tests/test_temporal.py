import pandas as pd
import numpy as np
import pytest

from helpers.temporal import find_missing_covariates, resample_to_frequency, validate_time_series


def test_resample_daily_to_weekly_mean():
    # Mon 2020-01-06 .. Sun 2020-01-19, values 1..14
    idx = pd.date_range("2020-01-06", periods=14, freq="D")
    s = pd.Series(np.arange(1.0, 15.0), index=idx, name="visits")
    out = resample_to_frequency(s, freq="W", how="mean")

    # Weekly bins end on Sunday
    assert list(out.index) == [pd.Timestamp("2020-01-12"), pd.Timestamp("2020-01-19")]
    assert np.isclose(out.iloc[0], 4.0)
    assert np.isclose(out.iloc[1], 11.0)
    assert out.name == "visits"


def test_resample_sum_and_period_index():
    idx = pd.period_range("2021-01", periods=6, freq="M")
    s = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0], index=idx)
    out = resample_to_frequency(s, freq="QE", how="sum", name="Q")

    assert list(out.index) == [pd.Timestamp("2021-03-31"), pd.Timestamp("2021-06-30")]
    assert out.tolist() == [6.0, 15.0]
    assert out.name == "Q"


def test_resample_keeps_empty_periods_visible():
    idx = pd.to_datetime(["2020-01-06", "2020-01-20"])
    out = resample_to_frequency(pd.Series([1.0, 2.0], index=idx), freq="W")
    assert len(out) == 3
    assert np.isnan(out.iloc[1])


def test_resample_rejects_unknown_aggregation():
    s = pd.Series([1.0], index=pd.to_datetime(["2020-01-01"]))
    with pytest.raises(ValueError):
        resample_to_frequency(s, how="mode")


def test_validate_regular_weekly_series():
    idx = pd.date_range("2020-01-05", periods=10, freq="W-SUN")
    s = pd.Series(np.arange(10.0), index=idx)
    assert validate_time_series(s) is s
    assert validate_time_series(s, freq="W-SUN") is s


def test_validate_detects_gap_with_nominal_frequency():
    idx = pd.date_range("2020-01-05", periods=10, freq="W-SUN").delete(3)
    s = pd.Series(np.arange(9.0), index=idx)

    with pytest.raises(ValueError, match="gaps"):
        validate_time_series(s, freq="W-SUN")
    # Without a nominal frequency the gap makes the index irregular
    with pytest.raises(ValueError, match="irregular"):
        validate_time_series(s)
    # Gap check can be disabled
    validate_time_series(s, require_regular=False)


@pytest.mark.parametrize("build, message", [
    (lambda idx: pd.Series(np.arange(5.0), index=idx[[0, 1, 1, 2, 3]]), "Duplicate"),
    (lambda idx: pd.Series(np.arange(5.0), index=idx[::-1]), "increasing"),
    (lambda idx: pd.Series([1.0, np.nan, 3.0, 4.0, 5.0], index=idx), "non-finite"),
    (lambda idx: pd.Series(np.arange(5.0)), "DatetimeIndex"),
    (lambda idx: pd.Series([], dtype=float), "empty"),
])
def test_validate_rejects_bad_series(build, message):
    idx = pd.date_range("2020-01-05", periods=5, freq="W-SUN")
    with pytest.raises(ValueError, match=message):
        validate_time_series(build(idx))


def test_find_missing_covariates():
    idx = pd.date_range("2020-01-05", periods=5, freq="W-SUN")
    cov = pd.DataFrame({"a": [1.0, 2.0, np.nan, 4.0], "b": [1.0, 2.0, np.nan, np.nan]}, index=idx[:4])

    # Row 2 is all NaN, row 3 is partly NaN, row 4 is absent
    assert find_missing_covariates(idx, cov) == [idx[2], idx[3], idx[4]]
    assert find_missing_covariates(idx[:2], cov) == []
