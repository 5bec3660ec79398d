"""Registry package for healthcore-sdk."""
from __future__ import annotations

from healthcore.registry.registry import ProbeRegistry, RegistryStatistics

__all__ = ["ProbeRegistry", "RegistryStatistics"]
