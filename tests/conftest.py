import numpy as np
import pandas as pd
import pytest


def _weekly_index(n_periods, start="2020-01-05"):
    return pd.date_range(start=start, periods=n_periods, freq="W-SUN")


@pytest.fixture
def make_weekly_series():
    """Factory for synthetic weekly series with trend, yearly seasonality and noise."""
    def _make(n_periods=160, seed=42, name="sales"):
        rng = np.random.default_rng(seed)
        t = np.arange(n_periods)
        values = 100 + 0.2 * t + 5 * np.sin(2 * np.pi * t / 52.18) + rng.normal(0, 1, n_periods)
        return pd.Series(values, index=_weekly_index(n_periods), name=name)
    return _make


@pytest.fixture
def weekly_series(make_weekly_series):
    return make_weekly_series()


@pytest.fixture
def make_covariates():
    """Factory for a covariate frame (numeric price, categorical promo) on an index."""
    def _make(index, seed=7):
        rng = np.random.default_rng(seed)
        n = len(index)
        return pd.DataFrame({
            "price": 10 + rng.normal(0, 0.5, n),
            "promo": pd.Categorical(np.where(np.arange(n) % 4 == 0, "yes", "no")),
        }, index=index)
    return _make


@pytest.fixture
def weekly_covariates(weekly_series, make_covariates):
    return make_covariates(weekly_series.index)


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch):
    # Keep a developer's override file out of the tests
    monkeypatch.delenv("FORECAST_BACKTEST_CONFIG", raising=False)
