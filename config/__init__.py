"""Configuration management for the forecast backtester."""

from .manager import (
    ConfigurationError,
    ConfigurationManager,
    get_config,
)

__all__ = [
    'ConfigurationError',
    'ConfigurationManager',
    'get_config',
]
