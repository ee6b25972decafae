import pytest

from backtest_src.forecasting_utils import MODEL_CLASSES, create_model, create_models_from_config
from config import ConfigurationManager
from forecasters import LastValueForecaster, SarimaxForecaster, StructuralTimeSeriesForecaster


def test_create_model_by_name():
    model = create_model(" Structural ", harmonics=2, require_convergence=False)
    assert isinstance(model, StructuralTimeSeriesForecaster)
    assert model.harmonics == 2
    assert model.require_convergence is False


def test_list_parameters_become_tuples():
    model = create_model("sarimax", order=[2, 0, 1], seasonal_order=[0, 0, 0, 0])
    assert isinstance(model, SarimaxForecaster)
    assert model.order == (2, 0, 1)


def test_unknown_model_and_bad_parameters():
    with pytest.raises(ValueError, match="Unknown model"):
        create_model("lstm")
    with pytest.raises(ValueError, match="Invalid parameters"):
        create_model("naive_last", window=4)


def test_models_from_default_config():
    manager = ConfigurationManager(use_env=False)
    models = create_models_from_config(["structural", "sarimax", "naive_last"], manager)

    assert list(models) == ["structural", "sarimax", "naive_last"]
    assert models["structural"].seasonal_period == 52.18
    assert models["sarimax"].order == (1, 1, 1)
    assert isinstance(models["naive_last"], LastValueForecaster)


def test_models_without_covariates():
    models = create_models_from_config(["structural", "naive_mean"], use_covariates=False)
    assert models["structural"].use_covariates is False
    assert models["naive_mean"].use_covariates is False


def test_every_registered_model_builds_from_config():
    manager = ConfigurationManager(use_env=False)
    models = create_models_from_config(list(MODEL_CLASSES), manager)
    assert set(models) == set(MODEL_CLASSES)


def test_empty_model_list_rejected():
    with pytest.raises(ValueError):
        create_models_from_config([])
