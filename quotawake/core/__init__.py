"""
Core module - Engineering foundation

Contains configuration, logging, HTTP client, errors, and time utilities.
"""

from quotawake.core.config import (
    MonitorConfig,
    Settings,
    get_settings,
    load_yaml_config,
)
from quotawake.core.errors import (
    QuotawakeError,
    ProviderError,
    ConfigurationError,
    EnumerationError,
)
from quotawake.core.logging import setup_logging, get_logger

__all__ = [
    "MonitorConfig",
    "Settings",
    "get_settings",
    "load_yaml_config",
    "QuotawakeError",
    "ProviderError",
    "ConfigurationError",
    "EnumerationError",
    "setup_logging",
    "get_logger",
]
