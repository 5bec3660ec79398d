"""In-process health metrics for healthcore-sdk.

Accumulates per-component outcome counts, latency statistics, cache
effectiveness and circuit breaker transitions.  No external dependencies
required.

Shipped in this module
----------------------
- LatencySummary          — aggregated latency stats for one component
- ComponentSummary        — everything recorded for one component
- HealthMetricsCollector  — thread-safe accumulator fed by the orchestrator

Extension points
-------------------
Exporters can read :meth:`HealthMetricsCollector.summary` and push it to any
metrics backend.
"""
from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta

from healthcore.resilience.circuit_breaker import CircuitState
from healthcore.schema.result import HealthStatus, ProbeResult

_ONE_MS = timedelta(milliseconds=1)


@dataclass
class LatencySummary:
    """Aggregated latency statistics in milliseconds.

    Attributes
    ----------
    count:
        Number of recorded observations.
    total:
        Sum of all observed values.
    minimum:
        Smallest observed value.
    maximum:
        Largest observed value.
    average:
        Arithmetic mean (``total / count``).
    """

    count: int
    total: float
    minimum: float
    maximum: float
    average: float


@dataclass
class ComponentSummary:
    """Metrics recorded for a single component."""

    component_name: str
    status_counts: dict[str, int]
    latency_ms: LatencySummary
    last_status: HealthStatus | None
    cache_hits: int
    cache_misses: int
    transitions: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class _Accumulator:
    """Mutable accumulator for a single latency series."""

    count: int = 0
    total: float = 0.0
    minimum: float = float("inf")
    maximum: float = float("-inf")

    def record(self, value: float) -> None:
        self.count += 1
        self.total += value
        if value < self.minimum:
            self.minimum = value
        if value > self.maximum:
            self.maximum = value

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def summary(self) -> LatencySummary:
        return LatencySummary(
            count=self.count,
            total=self.total,
            minimum=self.minimum if self.count > 0 else 0.0,
            maximum=self.maximum if self.count > 0 else 0.0,
            average=self.average,
        )


@dataclass
class _ComponentStats:
    statuses: Counter[str] = field(default_factory=Counter)
    latency: _Accumulator = field(default_factory=_Accumulator)
    last_status: HealthStatus | None = None
    cache_hits: int = 0
    cache_misses: int = 0
    transitions: list[tuple[str, str]] = field(default_factory=list)


class HealthMetricsCollector:
    """Thread-safe in-memory accumulator for health-check metrics.

    :meth:`record_transition` matches the circuit breaker callback
    signature, so a collector can be attached directly with
    ``manager.on_transition(collector.record_transition)``.

    Examples
    --------
    >>> collector = HealthMetricsCollector()
    >>> collector.record_result(ProbeResult.up("db", latency=timedelta(milliseconds=20)))
    >>> collector.record_result(ProbeResult.up("db", latency=timedelta(milliseconds=40)))
    >>> collector.component_summary("db").latency_ms.average
    30.0
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._components: dict[str, _ComponentStats] = {}
        self._cycles = 0
        self._cycle_duration = _Accumulator()
        self._timeouts = 0

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_result(self, result: ProbeResult) -> None:
        """Record one probe outcome."""
        with self._lock:
            stats = self._stats(result.component_name)
            stats.statuses[result.status.code] += 1
            stats.latency.record(result.latency / _ONE_MS)
            stats.last_status = result.status
            if result.metadata.get("timeout") or result.metadata.get("orchestratorTimeout"):
                self._timeouts += 1

    def record_cache_hit(self, component_name: str) -> None:
        with self._lock:
            self._stats(component_name).cache_hits += 1

    def record_cache_miss(self, component_name: str) -> None:
        with self._lock:
            self._stats(component_name).cache_misses += 1

    def record_transition(
        self, component_name: str, from_state: CircuitState, to_state: CircuitState
    ) -> None:
        """Record a circuit breaker transition."""
        with self._lock:
            self._stats(component_name).transitions.append(
                (from_state.value, to_state.value)
            )

    def record_cycle(self, duration_seconds: float) -> None:
        """Record the wall-clock duration of one report cycle."""
        with self._lock:
            self._cycles += 1
            self._cycle_duration.record(duration_seconds * 1000.0)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def component_summary(self, component_name: str) -> ComponentSummary | None:
        """Return metrics for *component_name*, or ``None`` if never seen."""
        with self._lock:
            stats = self._components.get(component_name)
            if stats is None:
                return None
            return self._to_summary(component_name, stats)

    def components(self) -> list[str]:
        with self._lock:
            return list(self._components)

    def summary(self) -> dict[str, object]:
        """Return a JSON-friendly snapshot of everything recorded."""
        with self._lock:
            components = {
                name: self._to_summary(name, stats)
                for name, stats in self._components.items()
            }
            hits = sum(s.cache_hits for s in self._components.values())
            misses = sum(s.cache_misses for s in self._components.values())
            cycle = self._cycle_duration.summary()
            cycles = self._cycles
            timeouts = self._timeouts
        lookups = hits + misses
        return {
            "cycles": cycles,
            "average_cycle_ms": cycle.average,
            "timeouts": timeouts,
            "cache": {
                "hits": hits,
                "misses": misses,
                "hit_rate": hits / lookups if lookups else 0.0,
            },
            "components": {
                name: {
                    "status_counts": s.status_counts,
                    "last_status": s.last_status.code if s.last_status else None,
                    "latency_ms": {
                        "count": s.latency_ms.count,
                        "min": s.latency_ms.minimum,
                        "max": s.latency_ms.maximum,
                        "avg": s.latency_ms.average,
                    },
                    "cache_hits": s.cache_hits,
                    "cache_misses": s.cache_misses,
                    "transitions": [f"{a}->{b}" for a, b in s.transitions],
                }
                for name, s in components.items()
            },
        }

    def reset(self) -> None:
        """Clear all accumulated metrics."""
        with self._lock:
            self._components.clear()
            self._cycles = 0
            self._cycle_duration = _Accumulator()
            self._timeouts = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _stats(self, component_name: str) -> _ComponentStats:
        stats = self._components.get(component_name)
        if stats is None:
            stats = _ComponentStats()
            self._components[component_name] = stats
        return stats

    @staticmethod
    def _to_summary(name: str, stats: _ComponentStats) -> ComponentSummary:
        return ComponentSummary(
            component_name=name,
            status_counts=dict(stats.statuses),
            latency_ms=stats.latency.summary(),
            last_status=stats.last_status,
            cache_hits=stats.cache_hits,
            cache_misses=stats.cache_misses,
            transitions=list(stats.transitions),
        )

    def __repr__(self) -> str:
        with self._lock:
            count = len(self._components)
        return f"HealthMetricsCollector(components={count})"


__all__ = ["ComponentSummary", "HealthMetricsCollector", "LatencySummary"]
