"""
Logging utilities for the forecast backtester.

Every module logs through ``logging.getLogger(__name__)``; this module only
configures the root logger for command-line runs and validates level names.
"""

import logging
import warnings
from typing import Optional, Union

from statsmodels.tools.sm_exceptions import ConvergenceWarning

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

logger = logging.getLogger(__name__)


def validate_log_level(level: Optional[Union[str, int]], default: str = "INFO") -> int:
    """
    Convert a level name (case-insensitive) or number to a logging level.

    Parameters
    ----------
    level : str or int, optional
        Level name such as "info" or a numeric level. None selects ``default``.
    default : str
        Level used when ``level`` is None.

    Returns
    -------
    int
        Numeric logging level

    Raises
    ------
    ValueError
        If the name is not one of DEBUG, INFO, WARNING, ERROR, CRITICAL
    """
    if level is None:
        level = default
    if isinstance(level, int):
        return level

    name = str(level).strip().upper()
    if name not in VALID_LEVELS:
        raise ValueError(f"Invalid log level '{level}', expected one of {', '.join(VALID_LEVELS)}")
    return getattr(logging, name)


def setup_logging(level: Optional[Union[str, int]] = None, fmt: str = DEFAULT_FORMAT) -> int:
    """
    Configure the root logger for a command-line run.

    ``force=True`` replaces handlers installed by an earlier call so repeated
    runs in one interpreter do not duplicate output. Above DEBUG, library
    convergence and deprecation warnings are silenced.

    Returns
    -------
    int
        The numeric level that was applied
    """
    numeric = validate_log_level(level)
    logging.basicConfig(level=numeric, format=fmt, force=True)

    if numeric <= logging.DEBUG:
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")

    # cmdstanpy and prophet are chatty at INFO
    for noisy in ("cmdstanpy", "prophet"):
        logging.getLogger(noisy).setLevel(max(numeric, logging.WARNING))

    logger.debug("Logging configured at %s", logging.getLevelName(numeric))
    return numeric
