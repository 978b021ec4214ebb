"""Configuration package for runtime settings, logging and startup validation."""

from .logging import config_bind_log_context, config_configure_logging
from .settings import RunnerSettings, SettingsLoadError, config_load_settings

__all__ = [
    "RunnerSettings",
    "SettingsLoadError",
    "config_bind_log_context",
    "config_configure_logging",
    "config_load_settings",
]
