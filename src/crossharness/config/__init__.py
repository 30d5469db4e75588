#
# config/__init__.py
#
"""
Configuration handling sub-package for crossharness.

Exports the loading function and core configuration models.
"""

from .loader import DEFAULT_CONFIG_FILENAME, find_config_file, load_config
from .models import (
    BuildConfig,
    GlobalConfig,
    HarnessConfig,
    PathsConfig,
    RuntimeConfig,
)

__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "BuildConfig",
    "GlobalConfig",
    "HarnessConfig",
    "PathsConfig",
    "RuntimeConfig",
    "find_config_file",
    "load_config",
]

# 🔼⚙️
