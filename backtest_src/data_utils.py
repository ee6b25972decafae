# backtest_src/data_utils.py

import pandas as pd
from pathlib import Path
from typing import List, Optional, Union
import logging

from helpers.temporal import resample_to_frequency

logger = logging.getLogger(__name__)


def _read_dated_csv(path: Path, date_column: str, what: str) -> pd.DataFrame:
    if not path.exists():
        raise SystemExit(f"{what} CSV not found: {path}")

    df = pd.read_csv(path)
    if date_column not in df.columns:
        raise SystemExit(f"{what} CSV must contain a '{date_column}' column.")

    df[date_column] = pd.to_datetime(df[date_column], errors="coerce")
    n_bad = int(df[date_column].isna().sum())
    if n_bad:
        logger.warning("Dropped %d rows with unparseable dates from %s", n_bad, path)
    return df.dropna(subset=[date_column]).sort_values(date_column).reset_index(drop=True)


def load_series_csv(series_path: Union[str, Path], date_column: str = "date", value_column: str = "value",
                    freq: Optional[str] = None, how: str = "mean") -> pd.Series:
    """
    Load a target series from a CSV file with a date column and a value column.

    Parameters
    ----------
    series_path : Path
        CSV file to read.
    date_column, value_column : str
        Column names for the timestamps and the observed values.
    freq : str, optional
        If given, aggregate the observations onto this pandas frequency
        (e.g. "W" for weekly) with ``how``.
    how : str, default "mean"
        Within-period aggregation used with ``freq``.

    Returns
    -------
    pd.Series
        Series with DatetimeIndex, sorted by date, named after ``value_column``.

    Raises
    ------
    SystemExit
        If the file doesn't exist, lacks required columns, or contains no valid data.
    """
    series_path = Path(series_path)
    logger.info("Loading target series from: %s", series_path)
    df_series = _read_dated_csv(series_path, date_column, "Series")

    if value_column not in df_series.columns:
        raise SystemExit(f"Series CSV must contain '{date_column}' and '{value_column}' columns.")

    df_series[value_column] = pd.to_numeric(df_series[value_column], errors="coerce")
    df_series = df_series.dropna(subset=[value_column])
    if df_series.empty:
        raise SystemExit("No valid rows found in series CSV after parsing.")

    series = pd.Series(df_series[value_column].values,
                       index=pd.DatetimeIndex(df_series[date_column], name=date_column),
                       name=value_column)

    if freq:
        series = resample_to_frequency(series, freq=freq, how=how)
        logger.info("Resampled series to '%s' (%s): %d periods", freq, how, len(series))
    else:
        inferred = pd.infer_freq(series.index) if len(series) >= 3 else None
        if inferred:
            series = series.asfreq(inferred)

    logger.info("Loaded %d observations from %s to %s", len(series), series.index[0].date(), series.index[-1].date())
    return series


def load_covariates_csv(covariates_path: Union[str, Path], date_column: str = "date",
                        columns: Optional[List[str]] = None,
                        categorical: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Load a covariate frame indexed by timestamp.

    Columns listed in ``categorical`` (and any non-numeric column) are kept
    as pandas categoricals; everything else is coerced to float.

    Raises
    ------
    SystemExit
        If the file or a requested column is missing.
    """
    covariates_path = Path(covariates_path)
    logger.info("Loading covariates from: %s", covariates_path)
    df = _read_dated_csv(covariates_path, date_column, "Covariates")

    feature_columns = columns or [c for c in df.columns if c != date_column]
    missing = [c for c in feature_columns if c not in df.columns]
    if missing:
        raise SystemExit(f"Covariates CSV is missing columns: {missing}")

    categorical = set(categorical or [])
    out = pd.DataFrame(index=pd.DatetimeIndex(df[date_column], name=date_column))
    for col in feature_columns:
        values = df[col].values
        numeric = pd.to_numeric(df[col], errors="coerce")
        if col in categorical or (numeric.isna().all() and df[col].notna().any()):
            out[col] = pd.Categorical(values)
        else:
            out[col] = numeric.values

    logger.info("Loaded %d covariate rows with columns %s", len(out), list(out.columns))
    return out
