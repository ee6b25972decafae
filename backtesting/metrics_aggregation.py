"""Per-horizon aggregation of rolling-origin backtest errors.

Every fold contributes one error per horizon offset. This module groups those
errors by offset and reduces each group to a single score, producing the
``ScoreTable`` returned by the harness.

Features:
- Mean, median and trimmed-mean reducers
- Order-independent reduction (records are sorted before reducing)
- Per-offset descriptive statistics and t-distribution confidence intervals
- Plain-text performance summaries
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)

# (fold_index, horizon_offset, error)
ErrorRecord = Tuple[int, int, float]

TRIM_PROPORTION = 0.1


class AggregationMethod(Enum):
    """Methods for aggregating per-offset errors across folds."""
    MEAN = "mean"
    MEDIAN = "median"
    TRIMMED_MEAN = "trimmed_mean"

    @classmethod
    def coerce(cls, value: Union[str, "AggregationMethod"]) -> "AggregationMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = [m.value for m in cls]
            raise ValueError(f"Unknown aggregation method '{value}', expected one of {valid}") from None


def _trimmed_mean(values: np.ndarray) -> float:
    if np.isnan(values).any():
        return float("nan")
    return float(stats.trim_mean(values, TRIM_PROPORTION))


_REDUCERS: Dict[AggregationMethod, Callable[[np.ndarray], float]] = {
    AggregationMethod.MEAN: lambda v: float(np.mean(v)),
    AggregationMethod.MEDIAN: lambda v: float(np.median(v)),
    AggregationMethod.TRIMMED_MEAN: _trimmed_mean,
}


@dataclass
class ScoreTable:
    """Aggregated error per horizon offset (1..H).

    ``scores`` is indexed by horizon offset; ``fold_errors`` keeps the
    long-form (fold_index, horizon_offset, error) records it was built from.
    """

    scores: pd.Series
    fold_errors: pd.DataFrame
    aggregation_method: AggregationMethod = AggregationMethod.MEAN
    metric_name: str = "error"
    model_name: Optional[str] = None

    @property
    def horizon(self) -> int:
        return len(self.scores)

    @property
    def n_folds(self) -> int:
        return int(self.fold_errors["fold_index"].nunique())

    @property
    def offsets(self) -> List[int]:
        return [int(h) for h in self.scores.index]

    def __getitem__(self, offset: int) -> float:
        if offset not in self.scores.index:
            raise KeyError(f"No score for horizon offset {offset} (horizon is {self.horizon})")
        return float(self.scores.loc[offset])

    def __len__(self) -> int:
        return len(self.scores)

    def __iter__(self) -> Iterator[int]:
        return iter(self.offsets)

    def items(self) -> Iterator[Tuple[int, float]]:
        for offset in self.offsets:
            yield offset, self[offset]

    def to_series(self) -> pd.Series:
        return self.scores.copy()

    def observations(self) -> pd.Series:
        """Number of fold errors behind each offset's score."""
        return self.fold_errors.groupby("horizon_offset")["error"].size().rename("observations")

    def to_frame(self) -> pd.DataFrame:
        frame = self.scores.rename(self.metric_name).to_frame()
        frame["observations"] = self.observations()
        return frame

    def overall(self) -> float:
        """Single-number summary: the configured reducer applied across offsets."""
        return _REDUCERS[self.aggregation_method](self.scores.to_numpy(dtype=float))

    def describe(self) -> pd.DataFrame:
        """Per-offset count, mean, std, median, min and max of the fold errors."""
        grouped = self.fold_errors.groupby("horizon_offset")["error"]
        return pd.DataFrame({
            "count": grouped.size(),
            "mean": grouped.mean(),
            "std": grouped.std(ddof=1),
            "median": grouped.median(),
            "min": grouped.min(),
            "max": grouped.max(),
        })

    def confidence_interval(self, level: float = 95) -> pd.DataFrame:
        """
        t-distribution interval for the mean error at each offset.

        Offsets with fewer than two observations get a degenerate interval
        at the mean.
        """
        alpha = 1 - (level / 100)
        rows = {}
        for offset, errors in self.fold_errors.groupby("horizon_offset")["error"]:
            values = errors.to_numpy(dtype=float)
            mean_val = float(np.mean(values))
            if len(values) < 2:
                rows[offset] = (mean_val, mean_val)
                continue
            std_err = float(np.std(values, ddof=1)) / np.sqrt(len(values))
            t_value = stats.t.ppf(1 - alpha / 2, df=len(values) - 1)
            rows[offset] = (mean_val - t_value * std_err, mean_val + t_value * std_err)

        frame = pd.DataFrame.from_dict(rows, orient="index", columns=["lower", "upper"])
        frame.index.name = "horizon_offset"
        return frame


def aggregate_errors(records: Iterable[ErrorRecord],
                     aggregation_method: Union[str, AggregationMethod] = AggregationMethod.MEAN,
                     metric_name: str = "error",
                     model_name: Optional[str] = None) -> ScoreTable:
    """Group error records by horizon offset and reduce each group.

    Parameters
    ----------
    records : iterable of (fold_index, horizon_offset, error)
        Errors from any number of folds, in any order
    aggregation_method : AggregationMethod or str
        Reducer applied to each offset group
    metric_name : str
        Label for the score column
    model_name : str, optional
        Label of the model that produced the errors

    Returns
    -------
    ScoreTable
        Scores for every offset present in ``records``

    Notes
    -----
    Records are sorted by (horizon_offset, fold_index) before reduction, so
    the result is bit-identical for any input order. Non-finite errors are
    not filtered: a NaN error makes its offset's mean NaN.
    """
    method = AggregationMethod.coerce(aggregation_method)
    ordered = sorted(((int(f), int(h), float(e)) for f, h, e in records), key=lambda r: (r[1], r[0]))
    if not ordered:
        raise ValueError("No error records provided for aggregation")

    seen = set()
    grouped: Dict[int, List[float]] = {}
    for fold_index, offset, error in ordered:
        if (fold_index, offset) in seen:
            raise ValueError(f"Duplicate error record for fold {fold_index}, offset {offset}")
        seen.add((fold_index, offset))
        grouped.setdefault(offset, []).append(error)

    reducer = _REDUCERS[method]
    scores = pd.Series(
        {offset: reducer(np.asarray(values, dtype=float)) for offset, values in grouped.items()},
        name=metric_name,
        dtype=float,
    )
    scores.index.name = "horizon_offset"

    fold_errors = pd.DataFrame(ordered, columns=["fold_index", "horizon_offset", "error"])

    logger.debug("Aggregated %d error records into %d offsets with %s",
                 len(ordered), len(scores), method.value)

    return ScoreTable(
        scores=scores,
        fold_errors=fold_errors,
        aggregation_method=method,
        metric_name=metric_name,
        model_name=model_name,
    )


def aggregate_fold_errors(fold_results: Iterable,
                          aggregation_method: Union[str, AggregationMethod] = AggregationMethod.MEAN,
                          metric_name: str = "error",
                          model_name: Optional[str] = None) -> ScoreTable:
    """Convenience function to aggregate FoldResult objects.

    Parameters
    ----------
    fold_results : iterable
        Objects exposing ``error_records()`` (FoldResult)

    Returns
    -------
    ScoreTable
        Aggregated results
    """
    records: List[ErrorRecord] = []
    for fold in fold_results:
        records.extend(fold.error_records())
    return aggregate_errors(records, aggregation_method, metric_name, model_name)


def create_performance_summary(score_table: ScoreTable,
                               confidence_levels: Union[float, Sequence[float], None] = (95,),
                               max_rows: Optional[int] = None) -> str:
    """Create a formatted performance summary.

    Parameters
    ----------
    score_table : ScoreTable
        Aggregated backtest scores
    confidence_levels : float or sequence of float, optional
        One t-interval per level is listed after each score
    max_rows : int, optional
        Limit on listed offsets; the remainder is elided

    Returns
    -------
    str
        Formatted performance summary
    """
    title = "Performance Summary"
    if score_table.model_name:
        title += f": {score_table.model_name}"

    lines = [title, "=" * 50]
    lines.append(f"Number of folds: {score_table.n_folds}")
    lines.append(f"Horizon: {score_table.horizon}")
    lines.append(f"Metric: {score_table.metric_name}")
    lines.append(f"Aggregation method: {score_table.aggregation_method.value}")
    lines.append(f"Overall ({score_table.aggregation_method.value} across offsets): {score_table.overall():.4f}")
    lines.append("")
    lines.append("Per-horizon scores:")
    lines.append("-" * 30)

    if confidence_levels is None:
        levels = []
    elif isinstance(confidence_levels, (int, float)):
        levels = [confidence_levels]
    else:
        levels = sorted(confidence_levels)
    intervals = [(level, score_table.confidence_interval(level)) for level in levels]

    offsets = score_table.offsets
    shown = offsets if max_rows is None else offsets[:max_rows]
    for offset in shown:
        line = f"  h={offset:>3}: {score_table[offset]:.4f}"
        for level, ci in intervals:
            lower, upper = ci.loc[offset, "lower"], ci.loc[offset, "upper"]
            line += f" [{level:g}% CI: {lower:.4f}, {upper:.4f}]"
        lines.append(line)
    if len(shown) < len(offsets):
        lines.append(f"  ... {len(offsets) - len(shown)} more offsets")

    return "\n".join(lines)
