"""Telemetry package for healthcore-sdk."""
from __future__ import annotations

from healthcore.telemetry.collector import (
    ComponentSummary,
    HealthMetricsCollector,
    LatencySummary,
)

__all__ = ["ComponentSummary", "HealthMetricsCollector", "LatencySummary"]
