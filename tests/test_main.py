"""End-to-end tests of the command-line workflow."""

import numpy as np
import pandas as pd
import pytest

from backtest_src.main import main, setup_cli_parser

BASE_ARGS = ["--model", "naive_mean,naive_last", "--initial-window", "20",
             "--horizon", "3", "--step", "5", "--log-level", "warning"]


@pytest.fixture
def csv_files(tmp_path):
    dates = pd.date_range("2021-01-03", periods=40, freq="W-SUN")
    series_path = tmp_path / "series.csv"
    pd.DataFrame({"date": dates.strftime("%Y-%m-%d"), "value": np.arange(1.0, 41.0)}).to_csv(series_path, index=False)

    covariates_path = tmp_path / "covariates.csv"
    pd.DataFrame({
        "date": dates.strftime("%Y-%m-%d"),
        "price": np.linspace(9.0, 11.0, 40),
        "promo": np.where(np.arange(40) % 3 == 0, "yes", "no"),
    }).to_csv(covariates_path, index=False)
    return series_path, covariates_path


def test_cli_parser_defaults():
    args = setup_cli_parser().parse_args(["--series-csv", "s.csv", "--log-level", "debug"])
    assert args.log_level == "DEBUG"
    assert args.model is None
    assert args.progress is None
    assert args.horizon is None


def test_successful_run_prints_tables(csv_files, capsys):
    series_path, covariates_path = csv_files
    code = main(["--series-csv", str(series_path), "--covariates-csv", str(covariates_path)] + BASE_ARGS)

    out = capsys.readouterr().out
    assert code == 0
    assert "Performance Summary: naive_mean" in out
    assert "Performance Summary: naive_last" in out
    assert "Aggregated error by horizon offset:" in out
    assert "Offsets won per model:" in out
    assert "Number of folds: 4" in out
    # Default configuration lists both 80% and 95% intervals
    assert "80% CI" in out and "95% CI" in out


def test_covariate_gap_fails_run(csv_files):
    series_path, covariates_path = csv_files
    frame = pd.read_csv(covariates_path)
    frame.drop(index=5).to_csv(covariates_path, index=False)

    assert main(["--series-csv", str(series_path), "--covariates-csv", str(covariates_path)] + BASE_ARGS) == 1


def test_insufficient_data_fails_run(csv_files):
    series_path, _ = csv_files
    args = ["--series-csv", str(series_path), "--model", "naive_mean",
            "--initial-window", "39", "--horizon", "3", "--log-level", "error"]
    assert main(args) == 1


def test_unknown_model_is_argument_error(csv_files):
    series_path, _ = csv_files
    args = ["--series-csv", str(series_path), "--model", "lstm", "--log-level", "error"]
    assert main(args) == 2


def test_malformed_config_is_argument_error(csv_files, tmp_path):
    series_path, _ = csv_files
    config_path = tmp_path / "bad.yaml"
    config_path.write_text("backtesting: [unclosed\n")
    assert main(["--series-csv", str(series_path), "--config", str(config_path), "--log-level", "error"]) == 2


def test_config_file_supplies_backtest_settings(csv_files, tmp_path, capsys):
    series_path, _ = csv_files
    config_path = tmp_path / "user.yaml"
    config_path.write_text("backtesting:\n  rolling_origin:\n    initial_window: 30\n    horizon: 2\n    step: 4\n")

    code = main(["--series-csv", str(series_path), "--config", str(config_path),
                 "--model", "naive_last", "--log-level", "error"])
    out = capsys.readouterr().out
    assert code == 0
    # range(30, 39, 4) gives origins 30, 34, 38
    assert "Number of folds: 3" in out
    assert "Horizon: 2" in out
