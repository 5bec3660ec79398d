"""Default configuration constants for healthcore-sdk.

``DEFAULT_CONFIG`` is the starting point used by
``ConfigLoader.load_auto()`` before applying file or environment overrides.
"""
from __future__ import annotations

from healthcore.schema.config import (
    CacheConfig,
    CircuitBreakerConfig,
    HealthCoreConfig,
    OrchestratorConfig,
)

DEFAULT_CONFIG: HealthCoreConfig = HealthCoreConfig(
    cache=CacheConfig(
        healthy_ttl_seconds=300.0,
        degraded_ttl_seconds=120.0,
        unhealthy_ttl_seconds=30.0,
        error_ttl_seconds=10.0,
        cleanup_interval_seconds=600.0,
        return_stale_on_error=True,
    ),
    circuit_breaker=CircuitBreakerConfig(
        failure_rate_threshold=0.5,
        minimum_number_of_calls=5,
        sliding_window_seconds=60.0,
        wait_duration_in_open_state_seconds=30.0,
        permitted_number_of_calls_in_half_open_state=3,
    ),
    orchestrator=OrchestratorConfig(
        per_call_timeout_seconds=10.0,
        global_timeout_seconds=30.0,
    ),
)
"""Baseline ``HealthCoreConfig`` used when no file or env config is present."""

DEFAULT_CONFIG_YAML = """\
# healthcore configuration
cache:
  enabled: true
  healthy_ttl_seconds: 300
  degraded_ttl_seconds: 120
  unhealthy_ttl_seconds: 30
  error_ttl_seconds: 10
  cleanup_interval_seconds: 600
  return_stale_on_error: true
circuit_breaker:
  enabled: true
  failure_rate_threshold: 0.5
  minimum_number_of_calls: 5
  sliding_window_seconds: 60
  wait_duration_in_open_state_seconds: 30
  permitted_number_of_calls_in_half_open_state: 3
orchestrator:
  per_call_timeout_seconds: 10
  global_timeout_seconds: 30
"""
"""Template written by ``healthcore init``."""
