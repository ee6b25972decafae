import random

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from backtesting.metrics_aggregation import (
    AggregationMethod,
    aggregate_errors,
    create_performance_summary,
)


def make_records(n_folds=6, horizon=4, seed=0):
    rng = np.random.default_rng(seed)
    return [(f, h, float(rng.gamma(2.0, 1.5))) for f in range(n_folds) for h in range(1, horizon + 1)]


def test_two_folds_mean_at_offset_one():
    records = [(0, 1, 2.0), (0, 2, 1.0), (0, 3, 5.0),
               (1, 1, 4.0), (1, 2, 3.0), (1, 3, 7.0)]
    table = aggregate_errors(records)

    assert table[1] == 3.0
    assert table[2] == 2.0
    assert table[3] == 6.0
    assert len(table) == 3
    assert list(table) == [1, 2, 3]
    assert table.n_folds == 2


def test_median_and_trimmed_mean():
    records = make_records(n_folds=11, horizon=2)
    by_offset = {h: [e for _, hh, e in records if hh == h] for h in (1, 2)}

    median = aggregate_errors(records, "median")
    trimmed = aggregate_errors(records, AggregationMethod.TRIMMED_MEAN)

    for h, values in by_offset.items():
        assert median[h] == pytest.approx(np.median(values))
        assert trimmed[h] == pytest.approx(stats.trim_mean(values, 0.1))


def test_result_is_bit_identical_for_any_record_order():
    records = make_records(n_folds=9, horizon=5, seed=11)
    reference = aggregate_errors(records).to_series().to_numpy()

    for seed in range(5):
        shuffled = records[:]
        random.Random(seed).shuffle(shuffled)
        assert np.array_equal(aggregate_errors(shuffled).to_series().to_numpy(), reference)


def test_nan_errors_propagate_for_every_method():
    records = [(0, 1, 1.0), (1, 1, np.nan), (0, 2, 1.0), (1, 2, 3.0)]
    for method in AggregationMethod:
        table = aggregate_errors(records, method)
        assert np.isnan(table[1])
        assert np.isfinite(table[2])


def test_duplicate_and_empty_records_are_rejected():
    with pytest.raises(ValueError, match="Duplicate"):
        aggregate_errors([(0, 1, 1.0), (0, 1, 2.0)])
    with pytest.raises(ValueError):
        aggregate_errors([])


def test_unknown_offset_raises_key_error():
    table = aggregate_errors([(0, 1, 1.0)])
    with pytest.raises(KeyError):
        table[2]


def test_to_frame_and_describe():
    records = [(0, 1, 1.0), (1, 1, 3.0), (2, 1, 5.0), (0, 2, 2.0), (1, 2, 2.0), (2, 2, 2.0)]
    table = aggregate_errors(records, metric_name="mae", model_name="naive_mean")

    frame = table.to_frame()
    assert list(frame.columns) == ["mae", "observations"]
    assert frame["observations"].tolist() == [3, 3]

    desc = table.describe()
    assert desc.loc[1, "mean"] == 3.0
    assert desc.loc[1, "std"] == pytest.approx(2.0)
    assert desc.loc[2, "min"] == desc.loc[2, "max"] == 2.0
    assert table.overall() == pytest.approx(2.5)


def test_confidence_interval_uses_t_distribution():
    records = [(0, 1, 1.0), (1, 1, 2.0), (2, 1, 3.0), (0, 2, 4.0)]
    table = aggregate_errors(records)

    ci = table.confidence_interval(95)
    half_width = stats.t.ppf(0.975, df=2) * 1.0 / np.sqrt(3)
    assert ci.loc[1, "lower"] == pytest.approx(2.0 - half_width)
    assert ci.loc[1, "upper"] == pytest.approx(2.0 + half_width)
    # A single observation gives a degenerate interval
    assert ci.loc[2, "lower"] == ci.loc[2, "upper"] == 4.0


def test_performance_summary_lists_offsets():
    table = aggregate_errors(make_records(n_folds=3, horizon=12), metric_name="mae", model_name="structural")
    summary = create_performance_summary(table, confidence_levels=80, max_rows=5)

    assert summary.startswith("Performance Summary: structural")
    assert "Number of folds: 3" in summary
    assert "Horizon: 12" in summary
    assert "h=  5:" in summary
    assert "h=  6:" not in summary
    assert "7 more offsets" in summary
    assert "80% CI" in summary


def test_aggregation_method_coerce():
    assert AggregationMethod.coerce("Mean") is AggregationMethod.MEAN
    assert AggregationMethod.coerce(AggregationMethod.MEDIAN) is AggregationMethod.MEDIAN
    with pytest.raises(ValueError):
        AggregationMethod.coerce("max")


def test_fold_errors_frame_is_sorted_by_offset_then_fold():
    table = aggregate_errors([(1, 2, 1.0), (0, 2, 2.0), (1, 1, 3.0), (0, 1, 4.0)])
    assert isinstance(table.fold_errors, pd.DataFrame)
    assert list(table.fold_errors.itertuples(index=False, name=None)) == [
        (0, 1, 4.0), (1, 1, 3.0), (0, 2, 2.0), (1, 2, 1.0)]


def test_performance_summary_lists_every_confidence_level():
    records = [(0, 1, 1.0), (1, 1, 2.0), (2, 1, 4.0)]
    table = aggregate_errors(records)
    line = [row for row in create_performance_summary(table, confidence_levels=[95, 80]).splitlines()
            if row.strip().startswith("h=")][0]

    assert line.index("80% CI") < line.index("95% CI")
    ci80 = table.confidence_interval(80)
    assert f"80% CI: {ci80.loc[1, 'lower']:.4f}, {ci80.loc[1, 'upper']:.4f}" in line

    plain = create_performance_summary(table, confidence_levels=None)
    assert "CI" not in plain
