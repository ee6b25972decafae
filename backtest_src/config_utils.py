# backtest_src/config_utils.py

import logging
from pathlib import Path
from typing import Optional, Union

from config import ConfigurationManager, get_config

logger = logging.getLogger(__name__)

# Configuration manager shared by the command-line workflow
config_manager: Optional[ConfigurationManager] = None


def initialize_config(config_path: Optional[Union[str, Path]] = None) -> ConfigurationManager:
    """
    Initializes the global configuration manager.

    Loads the packaged defaults plus the optional user file and logs any
    validation problems. A malformed or unreadable file raises
    ``ConfigurationError``.
    """
    global config_manager
    config_manager = get_config(config_path, reload=True)
    validation_errors = config_manager.validate_configuration()
    if validation_errors:
        logger.warning("Configuration validation warnings: %s", validation_errors)
    return config_manager


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
