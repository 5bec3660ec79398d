"""Configuration schema for healthcore-sdk.

Pydantic v2 models that act as the validated, strongly-typed boundary
between raw configuration sources (YAML files, environment variables,
in-memory dicts) and the cache, circuit breaker and orchestrator.

Shipped in this module
----------------------
- CacheConfig           — status-derived TTL schedule and stale policy
- CircuitBreakerConfig  — failure-rate thresholds and recovery timings
- OrchestratorConfig    — worker pool size and timeouts
- HealthCoreConfig      — root model bundling the three above
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from healthcore.schema.result import HealthStatus

ENV_PREFIX = "HEALTHCORE_"
ENV_NESTING_DELIMITER = "__"


def _default_pool_size() -> int:
    return os.cpu_count() or 4


class CacheConfig(BaseModel):
    """TTL schedule and fallback policy for :class:`~healthcore.cache.result_cache.ResultCache`.

    Parameters
    ----------
    enabled:
        When ``False`` the orchestrator always bypasses the cache.
    healthy_ttl_seconds:
        TTL for ``UP`` results.
    degraded_ttl_seconds:
        TTL for ``DEGRADED`` results.
    unhealthy_ttl_seconds:
        TTL for ``DOWN`` results.
    error_ttl_seconds:
        TTL for ``UNKNOWN`` results and for synthetic error results.
    cleanup_interval_seconds:
        Period of the background sweep that drops expired entries.
    return_stale_on_error:
        Serve the previous (possibly expired) entry when recomputation
        fails instead of a fresh error result.
    """

    model_config = {"extra": "forbid", "frozen": True}

    enabled: bool = Field(default=True)
    healthy_ttl_seconds: float = Field(default=300.0, gt=0)
    degraded_ttl_seconds: float = Field(default=120.0, gt=0)
    unhealthy_ttl_seconds: float = Field(default=30.0, gt=0)
    error_ttl_seconds: float = Field(default=10.0, gt=0)
    cleanup_interval_seconds: float = Field(default=600.0, gt=0)
    return_stale_on_error: bool = Field(default=True)

    @model_validator(mode="after")
    def _check_ttl_ordering(self) -> CacheConfig:
        ordered = (
            self.healthy_ttl_seconds,
            self.degraded_ttl_seconds,
            self.unhealthy_ttl_seconds,
            self.error_ttl_seconds,
        )
        if any(longer < shorter for longer, shorter in zip(ordered, ordered[1:])):
            raise ValueError(
                "TTLs must satisfy healthy >= degraded >= unhealthy >= error"
            )
        if self.healthy_ttl_seconds <= self.unhealthy_ttl_seconds:
            raise ValueError("healthy_ttl_seconds must exceed unhealthy_ttl_seconds")
        return self

    def ttl_for(self, status: HealthStatus) -> float:
        """Return the TTL in seconds for a result with *status*."""
        if status is HealthStatus.UP:
            return self.healthy_ttl_seconds
        if status is HealthStatus.DEGRADED:
            return self.degraded_ttl_seconds
        if status is HealthStatus.DOWN:
            return self.unhealthy_ttl_seconds
        return self.error_ttl_seconds


class CircuitBreakerConfig(BaseModel):
    """Thresholds and timings for per-component circuit breakers.

    Parameters
    ----------
    enabled:
        When ``False`` probes are invoked without breaker protection.
    failure_rate_threshold:
        Failure ratio within the sliding window that opens the circuit.
    minimum_number_of_calls:
        Minimum calls recorded in the window before the failure rate is
        evaluated.
    sliding_window_seconds:
        Length of the time window used for failure-rate evaluation.
    wait_duration_in_open_state_seconds:
        Time after the last failure before an open circuit starts probing.
    permitted_number_of_calls_in_half_open_state:
        Trial calls allowed, and successes required, while half-open.
    count_degraded_as_failure:
        Whether a ``DEGRADED`` outcome counts against the failure rate.
    """

    model_config = {"extra": "forbid", "frozen": True}

    enabled: bool = Field(default=True)
    failure_rate_threshold: float = Field(default=0.5, gt=0.0, le=1.0)
    minimum_number_of_calls: int = Field(default=5, ge=1)
    sliding_window_seconds: float = Field(default=60.0, gt=0)
    wait_duration_in_open_state_seconds: float = Field(default=30.0, ge=0)
    permitted_number_of_calls_in_half_open_state: int = Field(default=3, ge=1)
    count_degraded_as_failure: bool = Field(default=True)


class OrchestratorConfig(BaseModel):
    """Worker pool sizing and timeouts for :class:`~healthcore.orchestrator.orchestrator.HealthOrchestrator`."""

    model_config = {"extra": "forbid", "frozen": True}

    worker_pool_size: int = Field(default_factory=_default_pool_size, ge=1)
    per_call_timeout_seconds: float = Field(default=10.0, gt=0)
    global_timeout_seconds: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _check_timeouts(self) -> OrchestratorConfig:
        if self.per_call_timeout_seconds > self.global_timeout_seconds:
            raise ValueError(
                "per_call_timeout_seconds must not exceed global_timeout_seconds"
            )
        return self


class HealthCoreConfig(BaseModel):
    """Root configuration object.

    All sections have sensible defaults so that an orchestrator can start
    with zero configuration.

    Examples
    --------
    >>> HealthCoreConfig().circuit_breaker.minimum_number_of_calls
    5
    """

    model_config = {"extra": "forbid", "frozen": True}

    cache: CacheConfig = Field(default_factory=CacheConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)

    @model_validator(mode="before")
    @classmethod
    def _drop_null_sections(cls, values: Any) -> Any:  # noqa: ANN401
        """Treat ``cache: null`` in YAML as "use defaults"."""
        if isinstance(values, dict):
            return {k: v for k, v in values.items() if v is not None}
        return values

    # ------------------------------------------------------------------
    # Class-method loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_yaml(cls, path: str | Path) -> HealthCoreConfig:
        """Load and validate configuration from a YAML file.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist.
        pydantic.ValidationError
            If the parsed data fails validation.
        """
        resolved = Path(path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {resolved}")
        with resolved.open(encoding="utf-8") as fh:
            raw: object = yaml.safe_load(fh)
        data: dict[str, object] = dict(raw) if isinstance(raw, dict) else {}
        return cls.model_validate(data)

    @classmethod
    def env_overrides(cls, prefix: str = ENV_PREFIX) -> dict[str, Any]:
        """Collect nested overrides from environment variables.

        ``HEALTHCORE_CACHE__HEALTHY_TTL_SECONDS=60`` maps to
        ``{"cache": {"healthy_ttl_seconds": "60"}}``.  Values stay strings;
        Pydantic coerces them during validation.  Variables that do not name
        a ``section__field`` pair are ignored.
        """
        data: dict[str, Any] = {}
        for raw_key, raw_value in os.environ.items():
            if not raw_key.startswith(prefix):
                continue
            key = raw_key[len(prefix):].lower()
            section, sep, field_name = key.partition(ENV_NESTING_DELIMITER)
            if not sep or not field_name or section not in cls.model_fields:
                continue
            data.setdefault(section, {})[field_name] = raw_value
        return data

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> HealthCoreConfig:
        """Build configuration from environment variables only."""
        return cls.model_validate(cls.env_overrides(prefix))

    def merge(self, overrides: HealthCoreConfig | dict[str, Any]) -> HealthCoreConfig:
        """Return a new config with *overrides* laid over this one.

        Only fields explicitly set in *overrides* take effect; neither
        object is mutated.
        """
        if isinstance(overrides, HealthCoreConfig):
            override_data = overrides.model_dump(exclude_unset=True)
        else:
            override_data = overrides
        merged = self.model_dump()
        for section, values in override_data.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section] = {**merged[section], **values}
            else:
                merged[section] = values
        return HealthCoreConfig.model_validate(merged)
