"""Unit tests for healthcore.schema.config."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from healthcore.schema.config import (
    CacheConfig,
    CircuitBreakerConfig,
    HealthCoreConfig,
    OrchestratorConfig,
)
from healthcore.schema.result import HealthStatus


# ---------------------------------------------------------------------------
# CacheConfig
# ---------------------------------------------------------------------------

class TestCacheConfig:
    def test_defaults(self) -> None:
        config = CacheConfig()
        assert config.enabled is True
        assert config.healthy_ttl_seconds == 300.0
        assert config.degraded_ttl_seconds == 120.0
        assert config.unhealthy_ttl_seconds == 30.0
        assert config.error_ttl_seconds == 10.0
        assert config.cleanup_interval_seconds == 600.0
        assert config.return_stale_on_error is True

    def test_ttl_for_each_status(self) -> None:
        config = CacheConfig()
        assert config.ttl_for(HealthStatus.UP) == 300.0
        assert config.ttl_for(HealthStatus.DEGRADED) == 120.0
        assert config.ttl_for(HealthStatus.DOWN) == 30.0
        assert config.ttl_for(HealthStatus.UNKNOWN) == 10.0

    def test_ttl_ordering_enforced(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(degraded_ttl_seconds=400.0)

    def test_healthy_must_exceed_unhealthy(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(
                healthy_ttl_seconds=30.0,
                degraded_ttl_seconds=30.0,
                unhealthy_ttl_seconds=30.0,
            )

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(error_ttl_seconds=0)

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(ttl=5)  # type: ignore[call-arg]

    def test_frozen(self) -> None:
        config = CacheConfig()
        with pytest.raises(ValidationError):
            config.enabled = False  # type: ignore[misc]


# ---------------------------------------------------------------------------
# CircuitBreakerConfig / OrchestratorConfig
# ---------------------------------------------------------------------------

class TestCircuitBreakerConfig:
    def test_defaults(self) -> None:
        config = CircuitBreakerConfig()
        assert config.failure_rate_threshold == 0.5
        assert config.minimum_number_of_calls == 5
        assert config.sliding_window_seconds == 60.0
        assert config.wait_duration_in_open_state_seconds == 30.0
        assert config.permitted_number_of_calls_in_half_open_state == 3
        assert config.count_degraded_as_failure is True

    @pytest.mark.parametrize("threshold", [0.0, -0.1, 1.5])
    def test_threshold_range(self, threshold: float) -> None:
        with pytest.raises(ValidationError):
            CircuitBreakerConfig(failure_rate_threshold=threshold)

    def test_threshold_of_one_allowed(self) -> None:
        assert CircuitBreakerConfig(failure_rate_threshold=1.0).failure_rate_threshold == 1.0


class TestOrchestratorConfig:
    def test_default_pool_size_positive(self) -> None:
        assert OrchestratorConfig().worker_pool_size >= 1

    def test_per_call_must_not_exceed_global(self) -> None:
        with pytest.raises(ValidationError):
            OrchestratorConfig(per_call_timeout_seconds=40.0, global_timeout_seconds=30.0)

    def test_zero_pool_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OrchestratorConfig(worker_pool_size=0)


# ---------------------------------------------------------------------------
# HealthCoreConfig
# ---------------------------------------------------------------------------

class TestHealthCoreConfig:
    def test_sections_default(self) -> None:
        config = HealthCoreConfig()
        assert isinstance(config.cache, CacheConfig)
        assert isinstance(config.circuit_breaker, CircuitBreakerConfig)
        assert isinstance(config.orchestrator, OrchestratorConfig)

    def test_null_section_uses_defaults(self) -> None:
        config = HealthCoreConfig.model_validate({"cache": None})
        assert config.cache == CacheConfig()

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "hc.yaml"
        path.write_text("circuit_breaker:\n  minimum_number_of_calls: 2\n", encoding="utf-8")
        assert HealthCoreConfig.from_yaml(path).circuit_breaker.minimum_number_of_calls == 2

    def test_from_yaml_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            HealthCoreConfig.from_yaml(tmp_path / "absent.yaml")

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEALTHCORE_CACHE__HEALTHY_TTL_SECONDS", "600")
        monkeypatch.setenv("HEALTHCORE_NOT_A_SECTION", "ignored")
        overrides = HealthCoreConfig.env_overrides()
        assert overrides == {"cache": {"healthy_ttl_seconds": "600"}}

    def test_from_env_coerces_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HEALTHCORE_ORCHESTRATOR__WORKER_POOL_SIZE", "3")
        assert HealthCoreConfig.from_env().orchestrator.worker_pool_size == 3

    def test_merge_keeps_unset_fields(self) -> None:
        base = HealthCoreConfig.model_validate({"cache": {"error_ttl_seconds": 5}})
        merged = base.merge({"cache": {"healthy_ttl_seconds": 900}})
        assert merged.cache.healthy_ttl_seconds == 900.0
        assert merged.cache.error_ttl_seconds == 5.0
        assert base.cache.healthy_ttl_seconds == 300.0

    def test_merge_with_config_object(self) -> None:
        base = HealthCoreConfig()
        overrides = HealthCoreConfig.model_validate(
            {"circuit_breaker": {"enabled": False}}
        )
        merged = base.merge(overrides)
        assert merged.circuit_breaker.enabled is False
        assert merged.cache == base.cache
