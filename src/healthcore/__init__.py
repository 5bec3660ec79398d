"""healthcore-sdk: health-check orchestration with circuit breakers and a status-aware cache.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Quick-start
-----------
>>> import healthcore
>>> healthcore.__version__
'0.1.0'

>>> from healthcore import CallableProbe, HealthOrchestrator, ProbeRegistry
>>> registry = ProbeRegistry()
>>> registry.register(CallableProbe("db", "database", lambda: True))
>>> with HealthOrchestrator(registry, worker_pool_size=2) as orchestrator:
...     [r.status.code for r in orchestrator.execute_all()]
['UP']
"""
from __future__ import annotations

__version__: str = "0.1.0"

from healthcore.convenience import HealthCore

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
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

# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------
from healthcore.probes.base import AbstractProbe, Probe
from healthcore.probes.callable import CallableProbe
from healthcore.probes.cancellation import CancellationToken, current_cancellation_token

# ---------------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------------
from healthcore.registry.registry import ProbeRegistry, RegistryStatistics
from healthcore.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerManager,
    CircuitBreakerState,
    CircuitState,
)
from healthcore.cache.result_cache import CacheMetrics, ResultCache
from healthcore.orchestrator.deadline import Deadline
from healthcore.orchestrator.orchestrator import HealthOrchestrator, OrchestratorStatistics

# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------
from healthcore.telemetry.collector import ComponentSummary, HealthMetricsCollector

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
from healthcore.config.defaults import DEFAULT_CONFIG
from healthcore.config.loader import ConfigLoader
from healthcore.config.schema import validate_config

__all__ = [
    "__version__",
    "HealthCore",
    # schema: results
    "HealthStatus",
    "ProbeResult",
    "ProbeResultBuilder",
    "HealthReport",
    # schema: errors
    "ErrorSeverity",
    "HealthCoreError",
    "ConfigurationError",
    "InvalidProbeError",
    "RegistryError",
    "ProbeExecutionError",
    "ProbeTimeoutError",
    "ProbeFaultError",
    "OrchestratorClosedError",
    # schema: config
    "CacheConfig",
    "CircuitBreakerConfig",
    "OrchestratorConfig",
    "HealthCoreConfig",
    # probes
    "Probe",
    "AbstractProbe",
    "CallableProbe",
    "CancellationToken",
    "current_cancellation_token",
    # core
    "ProbeRegistry",
    "RegistryStatistics",
    "CircuitState",
    "CircuitBreaker",
    "CircuitBreakerManager",
    "CircuitBreakerState",
    "ResultCache",
    "CacheMetrics",
    "Deadline",
    "HealthOrchestrator",
    "OrchestratorStatistics",
    # telemetry
    "HealthMetricsCollector",
    "ComponentSummary",
    # config
    "DEFAULT_CONFIG",
    "ConfigLoader",
    "validate_config",
]
