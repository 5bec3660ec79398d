"""Unit tests for healthcore.probes."""
from __future__ import annotations

import asyncio
import threading
from datetime import timedelta

import pytest

from healthcore.probes.base import AbstractProbe, Probe
from healthcore.probes.callable import CallableProbe
from healthcore.probes.cancellation import (
    CancellationToken,
    bind_cancellation_token,
    current_cancellation_token,
)
from healthcore.schema.errors import InvalidProbeError
from healthcore.schema.result import ERROR_TYPE_KEY, HealthStatus, ProbeResult


class _StepClock:
    """Returns successive readings from a list."""

    def __init__(self, *readings: float) -> None:
        self._readings = list(readings)

    def __call__(self) -> float:
        return self._readings.pop(0)


class _DbProbe(AbstractProbe):
    def __init__(self, outcome: object, **kwargs: object) -> None:
        super().__init__("db", "database", **kwargs)  # type: ignore[arg-type]
        self._outcome = outcome

    def do_check(self) -> ProbeResult:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Probe ABC
# ---------------------------------------------------------------------------

class TestProbeInterface:
    def test_cannot_instantiate_abc(self) -> None:
        with pytest.raises(TypeError):
            Probe()  # type: ignore[abstract]

    def test_enabled_defaults_true(self) -> None:
        class Minimal(Probe):
            def component_name(self) -> str:
                return "m"

            def component_type(self) -> str:
                return "t"

            def execute(self) -> ProbeResult:
                return ProbeResult.up("m", "t")

        probe = Minimal()
        assert probe.enabled() is True
        assert "Minimal" in repr(probe)

    def test_execute_async_default_runs_execute(self) -> None:
        probe = CallableProbe("svc", "http", lambda: True)
        result = asyncio.run(probe.execute_async())
        assert result.status is HealthStatus.UP


# ---------------------------------------------------------------------------
# AbstractProbe template
# ---------------------------------------------------------------------------

class TestAbstractProbe:
    def test_empty_name_rejected(self) -> None:
        class Blank(AbstractProbe):
            def do_check(self) -> ProbeResult:
                return self.up()

        with pytest.raises(InvalidProbeError):
            Blank("", "database")

    def test_measures_latency_when_result_has_none(self) -> None:
        probe = _DbProbe(ProbeResult.up("db", "database"), clock=_StepClock(10.0, 10.25))
        assert probe.execute().latency == timedelta(milliseconds=250)

    def test_keeps_latency_reported_by_check(self) -> None:
        reported = ProbeResult.up("db", "database", latency=timedelta(milliseconds=7))
        probe = _DbProbe(reported, clock=_StepClock(0.0, 5.0))
        assert probe.execute().latency_ms == 7

    def test_exception_becomes_down(self) -> None:
        probe = _DbProbe(ConnectionError("refused"), clock=_StepClock(0.0, 0.1))
        result = probe.execute()
        assert result.status is HealthStatus.DOWN
        assert result.error_message == "refused"
        assert result.metadata[ERROR_TYPE_KEY] == "ConnectionError"
        assert result.latency == timedelta(milliseconds=100)

    def test_slow_success_is_degraded(self) -> None:
        probe = _DbProbe(
            ProbeResult.up("db", "database"),
            clock=_StepClock(0.0, 2.0),
            degradation_threshold=timedelta(seconds=1),
        )
        result = probe.execute()
        assert result.status is HealthStatus.DEGRADED
        assert result.metadata["degradationThresholdMs"] == 1000
        assert "exceeded degradation threshold" in (result.error_message or "")

    def test_fast_success_stays_up(self) -> None:
        probe = _DbProbe(
            ProbeResult.up("db", "database"),
            clock=_StepClock(0.0, 0.5),
            degradation_threshold=timedelta(seconds=1),
        )
        assert probe.execute().status is HealthStatus.UP

    def test_threshold_does_not_touch_down(self) -> None:
        probe = _DbProbe(
            ProbeResult.down("db", "database", error="x"),
            clock=_StepClock(0.0, 5.0),
            degradation_threshold=timedelta(seconds=1),
        )
        assert probe.execute().status is HealthStatus.DOWN

    def test_helpers_use_probe_identity(self) -> None:
        probe = _DbProbe(None)
        assert probe.degraded("slow").component_type == "database"
        assert probe.down("gone").component_name == "db"

    def test_set_enabled(self) -> None:
        probe = _DbProbe(None, is_enabled=False)
        assert probe.enabled() is False
        probe.set_enabled(True)
        assert probe.enabled() is True


# ---------------------------------------------------------------------------
# CallableProbe
# ---------------------------------------------------------------------------

class TestCallableProbe:
    def test_rejects_non_callable(self) -> None:
        with pytest.raises(InvalidProbeError):
            CallableProbe("x", "y", 42)  # type: ignore[arg-type]

    def test_bool_results(self) -> None:
        assert CallableProbe("a", "t", lambda: True).execute().status is HealthStatus.UP
        down = CallableProbe("b", "t", lambda: False).execute()
        assert down.status is HealthStatus.DOWN
        assert down.error_message == "Check returned False"

    def test_status_result(self) -> None:
        result = CallableProbe("a", "t", lambda: HealthStatus.DEGRADED).execute()
        assert result.status is HealthStatus.DEGRADED
        assert result.component_type == "t"

    def test_probe_result_passthrough(self) -> None:
        result = CallableProbe("a", "t", lambda: ProbeResult.up("a", "t", pool=2)).execute()
        assert result.metadata["pool"] == 2

    def test_unsupported_return_is_down(self) -> None:
        result = CallableProbe("a", "t", lambda: "fine").execute()
        assert result.status is HealthStatus.DOWN
        assert result.metadata[ERROR_TYPE_KEY] == "TypeError"

    def test_raising_callable_is_down(self) -> None:
        def boom() -> bool:
            raise RuntimeError("nope")

        result = CallableProbe("a", "t", boom).execute()
        assert result.status is HealthStatus.DOWN
        assert result.error_message == "nope"

    def test_async_callable_sync_execute(self) -> None:
        async def ping() -> bool:
            return True

        assert CallableProbe("a", "t", ping).execute().status is HealthStatus.UP

    def test_async_callable_execute_async(self) -> None:
        async def ping() -> HealthStatus:
            await asyncio.sleep(0)
            return HealthStatus.UP

        result = asyncio.run(CallableProbe("a", "t", ping).execute_async())
        assert result.status is HealthStatus.UP

    def test_async_callable_failure(self) -> None:
        async def ping() -> bool:
            raise ConnectionError("refused")

        result = asyncio.run(CallableProbe("a", "t", ping).execute_async())
        assert result.status is HealthStatus.DOWN
        assert result.error_message == "refused"
        assert result.metadata[ERROR_TYPE_KEY] == "ConnectionError"

    def test_async_and_sync_paths_agree_on_faults(self) -> None:
        async def ping() -> bool:
            raise ConnectionError("refused")

        probe = CallableProbe("a", "t", ping)
        sync_result = probe.execute()
        async_result = asyncio.run(probe.execute_async())
        assert sync_result.metadata == async_result.metadata

    def test_async_callable_latency_is_measured(self) -> None:
        async def ping() -> bool:
            await asyncio.sleep(0.02)
            return True

        result = asyncio.run(CallableProbe("a", "t", ping).execute_async())
        assert result.status is HealthStatus.UP
        assert result.latency >= timedelta(milliseconds=15)

    def test_async_callable_slow_success_is_degraded(self) -> None:
        async def ping() -> bool:
            await asyncio.sleep(0.05)
            return True

        probe = CallableProbe(
            "a", "t", ping, degradation_threshold=timedelta(milliseconds=10)
        )
        result = asyncio.run(probe.execute_async())
        assert result.status is HealthStatus.DEGRADED
        assert result.metadata["degradationThresholdMs"] == 10
        assert result.latency > timedelta(milliseconds=10)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class TestCancellation:
    def test_token_starts_uncancelled(self) -> None:
        token = CancellationToken()
        assert token.cancelled is False
        assert token.reason is None

    def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        token.cancel("timeout")
        token.cancel("shutdown")
        assert token.cancelled is True
        assert token.reason == "timeout"

    def test_wait_returns_when_cancelled(self) -> None:
        token = CancellationToken()
        threading.Timer(0.01, token.cancel).start()
        assert token.wait(2.0) is True

    def test_wait_times_out(self) -> None:
        assert CancellationToken().wait(0.01) is False

    def test_current_token_outside_binding_is_fresh(self) -> None:
        first = current_cancellation_token()
        first.cancel()
        assert current_cancellation_token().cancelled is False

    def test_binding_exposes_token(self) -> None:
        token = CancellationToken()
        with bind_cancellation_token(token):
            assert current_cancellation_token() is token
        assert current_cancellation_token() is not token
