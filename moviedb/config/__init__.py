"""
Configuration package
"""

from .loader import ConfigurationError, ConfigurationLoader, get_configuration_summary, load_configuration
from .settings import Settings, get_settings, parse_duration

__all__ = [
    "get_settings",
    "Settings",
    "ConfigurationError",
    "ConfigurationLoader",
    "load_configuration",
    "get_configuration_summary",
    "parse_duration",
]
