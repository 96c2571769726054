"""Configuration package exports."""

from .loader import HOME_ENV, ConfigLocator, ConfigRepository, resolve_home
from .models import (
    LOGICAL_COLUMNS,
    CubecraftSettings,
    GlobalConfig,
    HiveSettings,
    ProviderSettings,
    WatchSettings,
)

__all__ = [
    "HOME_ENV",
    "ConfigLocator",
    "ConfigRepository",
    "CubecraftSettings",
    "GlobalConfig",
    "HiveSettings",
    "LOGICAL_COLUMNS",
    "ProviderSettings",
    "WatchSettings",
    "resolve_home",
]
