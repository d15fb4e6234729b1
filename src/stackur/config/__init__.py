"""Configuration management for stackur."""

from .models import AWSSettings, EngineSettings, LoggingSettings, Settings
from .parser import ConfigValidationError, load_settings, DEFAULT_CONFIG_PATH

__all__ = [
    "AWSSettings",
    "EngineSettings",
    "LoggingSettings",
    "Settings",
    "ConfigValidationError",
    "load_settings",
    "DEFAULT_CONFIG_PATH",
]
