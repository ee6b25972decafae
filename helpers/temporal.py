# -*- coding: utf-8 -*-
"""
Temporal utilities for frequency alignment and index validation.

Functions
---------
- resample_to_frequency(series, freq, how): Regularize a series onto a nominal
  frequency by aggregating the observations that fall in each period.
- validate_time_series(series, freq): Enforce the target series invariants
  (datetime index, strictly increasing, no duplicates, no gaps).
- find_missing_covariates(index, covariates): Timestamps of ``index`` that have
  no covariate row.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
import pandas as pd

_AGGREGATIONS = ("mean", "sum", "last", "first", "median")


def _ensure_datetime_index(s: pd.Series) -> pd.Series:
    """
    Ensure a DatetimeIndex for the input series.

    - If PeriodIndex, convert to Timestamp index aligned at the period start.
    - Leaves DatetimeIndex unchanged.
    """
    if isinstance(s.index, pd.PeriodIndex):
        s = s.copy()
        s.index = s.index.to_timestamp()
    elif not isinstance(s.index, pd.DatetimeIndex):
        raise TypeError("Expected a Series with DatetimeIndex or PeriodIndex.")
    return s


def resample_to_frequency(series: pd.Series, freq: str = "W", how: str = "mean",
                          name: Optional[str] = None) -> pd.Series:
    """
    Aggregate a time series onto a regular frequency.

    Parameters
    ----------
    series : pd.Series
        Series with DatetimeIndex or PeriodIndex.
    freq : str, default "W"
        Target pandas offset alias (weekly, Sunday-anchored by default).
    how : str, default "mean"
        Within-period aggregation: one of mean, sum, last, first, median.
    name : Optional[str]
        Name for the returned Series. Defaults to series.name.

    Returns
    -------
    pd.Series
        Series on a regular index at ``freq``. Periods without observations
        are NaN, so gaps stay visible to ``validate_time_series``.

    Notes
    -----
    - Time-causality: each period only aggregates observations inside it.
    - The output is labelled at the period end (pandas default for weekly bins).
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")
    if how not in _AGGREGATIONS:
        raise ValueError(f"Unknown aggregation '{how}', expected one of {_AGGREGATIONS}")

    s = _ensure_datetime_index(series.dropna()).sort_index()
    out = getattr(s.resample(freq), how)()

    out.name = name if name is not None else series.name
    return out


def validate_time_series(series: pd.Series, freq: Optional[str] = None,
                         require_regular: bool = True) -> pd.Series:
    """
    Check a target series against the invariants the backtest relies on.

    Parameters
    ----------
    series : pd.Series
        Target series with a DatetimeIndex.
    freq : Optional[str]
        Nominal frequency. If omitted, the index frequency (``index.freq`` or
        ``pd.infer_freq``) is used for the gap check.
    require_regular : bool, default True
        Whether a gap relative to the nominal frequency is an error.

    Returns
    -------
    pd.Series
        The input series, unchanged.

    Raises
    ------
    ValueError
        On an empty series, a non-datetime index, duplicate or unsorted
        timestamps, non-finite values, or gaps.
    """
    if not isinstance(series, pd.Series):
        raise ValueError("Target series must be a pandas Series")
    if series.empty:
        raise ValueError("Target series cannot be empty")
    if not isinstance(series.index, pd.DatetimeIndex):
        raise ValueError("Target series must have a DatetimeIndex")

    idx = series.index
    if idx.has_duplicates:
        dupes = idx[idx.duplicated()].unique()
        raise ValueError(f"Duplicate timestamps in target series: {list(dupes[:5])}")
    if not idx.is_monotonic_increasing:
        raise ValueError("Target series timestamps must be strictly increasing")

    values = pd.to_numeric(series, errors="coerce").to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        bad = idx[~np.isfinite(values)]
        raise ValueError(f"Target series has missing or non-finite values at {list(bad[:5])}")

    if require_regular and len(idx) >= 3:
        nominal = freq or idx.freqstr or pd.infer_freq(idx)
        if nominal is None:
            raise ValueError("Target series has an irregular index; resample it to a fixed frequency first")
        expected = pd.date_range(start=idx[0], periods=len(idx), freq=nominal)
        if not expected.equals(idx):
            gaps = expected.difference(idx)
            where = f" (first missing period {gaps[0]})" if len(gaps) else ""
            raise ValueError(f"Target series has gaps at frequency '{nominal}'{where}")

    return series


def find_missing_covariates(index: pd.Index, covariates: pd.DataFrame) -> List[pd.Timestamp]:
    """
    Return the timestamps of ``index`` with no covariate row, in index order.

    A row with a NaN in any column counts as missing.
    """
    present = covariates.dropna(how="any").index
    missing = index[~index.isin(present)]
    return list(missing)
