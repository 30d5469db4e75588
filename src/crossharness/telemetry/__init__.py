#
# src/crossharness/telemetry/__init__.py
#
"""
Logging setup for crossharness.
"""
from .logger import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]
