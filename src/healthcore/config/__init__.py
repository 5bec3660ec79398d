"""Config package for healthcore-sdk.

Provides configuration loading, validation, and sensible defaults.
"""
from __future__ import annotations

from healthcore.config.defaults import DEFAULT_CONFIG
from healthcore.config.loader import ConfigLoader
from healthcore.config.schema import HealthCoreConfig, validate_config

__all__ = [
    "HealthCoreConfig",
    "validate_config",
    "ConfigLoader",
    "DEFAULT_CONFIG",
]
