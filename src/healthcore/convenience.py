"""Convenience API for healthcore-sdk: 3-line quickstart.

Example
-------
::

    from healthcore import HealthCore
    core = HealthCore()
    core.add("cache", "redis", lambda: redis_client.ping())
    print(core.report().status)

"""
from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any

from healthcore.orchestrator.orchestrator import HealthOrchestrator
from healthcore.probes.base import Probe
from healthcore.probes.callable import CallableProbe
from healthcore.registry.registry import ProbeRegistry
from healthcore.schema.config import HealthCoreConfig
from healthcore.schema.report import HealthReport
from healthcore.telemetry.collector import HealthMetricsCollector


class HealthCore:
    """Zero-config wrapper for the 80% use case.

    Owns a :class:`ProbeRegistry`, a :class:`HealthMetricsCollector` and a
    :class:`HealthOrchestrator` built from *config* so probes can be added
    and reported on immediately.

    Parameters
    ----------
    config:
        Optional configuration.  Defaults to ``HealthCoreConfig()``.

    Example
    -------
    ::

        core = HealthCore()

        @core.check("db", "database")
        def db_alive() -> bool:
            return pool.ping()

        report = core.report()
    """

    def __init__(self, config: HealthCoreConfig | None = None) -> None:
        self.config: HealthCoreConfig = config or HealthCoreConfig()
        self.registry: ProbeRegistry = ProbeRegistry()
        self.metrics: HealthMetricsCollector = HealthMetricsCollector()
        self.orchestrator: HealthOrchestrator = HealthOrchestrator.from_config(
            self.registry, self.config, metrics=self.metrics
        )

    def register(self, probe: Probe, *, priority: int | None = None) -> None:
        """Register a ready-made probe."""
        self.registry.register(probe, priority=priority)

    def add(
        self,
        component_name: str,
        component_type: str,
        fn: Callable[[], Any],
        *,
        priority: int | None = None,
    ) -> CallableProbe:
        """Wrap *fn* in a :class:`CallableProbe` and register it."""
        probe = CallableProbe(component_name, component_type, fn)
        self.registry.register(probe, priority=priority)
        return probe

    def remove(self, component_name: str) -> bool:
        """Deregister *component_name* and drop its cached result and breaker."""
        removed = self.registry.deregister(component_name)
        self.orchestrator.forget(component_name)
        return removed

    def check(
        self, component_name: str, component_type: str = "unknown"
    ) -> Callable[[Callable[[], Any]], Callable[[], Any]]:
        """Decorator form of :meth:`add`; returns the function unchanged."""

        def decorator(fn: Callable[[], Any]) -> Callable[[], Any]:
            self.add(component_name, component_type, fn)
            return fn

        return decorator

    def report(self, bypass_cache: bool = False) -> HealthReport:
        """Run one cycle and return the aggregated :class:`HealthReport`."""
        return HealthReport.from_results(
            self.orchestrator.execute_all(bypass_cache=bypass_cache)
        )

    def close(self) -> None:
        self.orchestrator.close()

    def __enter__(self) -> HealthCore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"HealthCore(probes={len(self.registry)})"
