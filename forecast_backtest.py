#!/usr/bin/env python3
"""
Rolling-origin backtest of forecasting models with exogenous covariates.

Usage
-----
    python forecast_backtest.py --help
    python forecast_backtest.py --series-csv data/sales.csv --model prophet --model structural
    python forecast_backtest.py --series-csv data/sales.csv --covariates-csv data/promo.csv \
        --initial-window 104 --horizon 52 --step 1

Module Structure
----------------
The code is organized in backtest_src/ with these modules:
- config_utils.py: Configuration management
- data_utils.py: Data loading
- parsing_utils.py: CLI argument parsing
- metrics_utils.py: Evaluation metrics
- forecasting_utils.py: Model construction
- main.py: Main entry point

The harness itself lives in backtesting/ and the models in forecasters/.
"""

import sys

from backtest_src.main import main

if __name__ == "__main__":
    sys.exit(main())
