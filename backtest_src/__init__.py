# backtest_src/__init__.py

"""
Forecast Backtester - Application Layer

This package wires the backtest harness (``backtesting``) and the forecast
models (``forecasters``) into a command-line tool.

Key Components
--------------
- config_utils: Configuration access with CLI override support
- data_utils: Loading target series and covariate CSVs
- parsing_utils: Command-line argument parsing helpers
- metrics_utils: Forecast error metrics and the Diebold-Mariano test
- forecasting_utils: Building forecast models from configuration
- main: Main entry point and workflow orchestration

Usage
-----
The package can be used as a command-line tool or imported for programmatic use:

    # Command-line usage
    python -m backtest_src.main --series-csv data/sales.csv --model prophet --model structural

    # Programmatic usage
    from backtest_src import metrics_utils, data_utils
"""

__version__ = "1.0.0"

# Leaf modules only; forecasting_utils and main import the backtesting
# package, which itself imports metrics_utils from here.
from .config_utils import initialize_config, get_config_value
from .data_utils import load_series_csv, load_covariates_csv
from .metrics_utils import get_metric, compare_forecasts, ZeroActualError

__all__ = [
    "initialize_config",
    "get_config_value",
    "load_series_csv",
    "load_covariates_csv",
    "get_metric",
    "compare_forecasts",
    "ZeroActualError",
    # Version info
    "__version__",
]
