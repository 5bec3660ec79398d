"""Schema package for healthcore-sdk.

Exports the complete public schema surface: probe results, the report
helper, errors, and the validated configuration models.
"""
from __future__ import annotations

from healthcore.schema.config import (
    CacheConfig,
    CircuitBreakerConfig,
    HealthCoreConfig,
    OrchestratorConfig,
)
from healthcore.schema.errors import (
    ConfigurationError,
    ErrorSeverity,
    HealthCoreError,
    InvalidProbeError,
    OrchestratorClosedError,
    ProbeExecutionError,
    ProbeFaultError,
    ProbeTimeoutError,
    RegistryError,
)
from healthcore.schema.report import HealthReport
from healthcore.schema.result import HealthStatus, ProbeResult, ProbeResultBuilder

__all__ = [
    # Results
    "HealthStatus",
    "ProbeResult",
    "ProbeResultBuilder",
    "HealthReport",
    # Errors
    "ErrorSeverity",
    "HealthCoreError",
    "ConfigurationError",
    "InvalidProbeError",
    "RegistryError",
    "ProbeExecutionError",
    "ProbeTimeoutError",
    "ProbeFaultError",
    "OrchestratorClosedError",
    # Config
    "CacheConfig",
    "CircuitBreakerConfig",
    "OrchestratorConfig",
    "HealthCoreConfig",
]
