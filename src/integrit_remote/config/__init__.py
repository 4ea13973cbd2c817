"""Configuration utilities for integrit-remote."""

from .loader import (
    Config,
    ConfigModel,
    LoggingSettings,
    NotifySettings,
    PathSettings,
    RemoteSettings,
    load_config,
)

__all__ = [
    "Config",
    "ConfigModel",
    "LoggingSettings",
    "NotifySettings",
    "PathSettings",
    "RemoteSettings",
    "load_config",
]
