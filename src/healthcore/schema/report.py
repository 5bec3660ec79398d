"""Caller-side aggregation of probe results.

The orchestrator deliberately returns a plain ordered list of
``ProbeResult`` values and imposes no aggregate policy.  ``HealthReport``
is a convenience for callers that want the usual rollup: per-status counts
and an overall status computed with ``HealthStatus.worst``.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from healthcore.schema.result import HealthStatus, ProbeResult


@dataclass
class HealthReport:
    """Aggregate view over one report cycle.

    Attributes
    ----------
    status:
        Overall status — the worst status across all results, ``UP`` when
        there are none.
    results:
        The results in the order they were produced.
    timestamp:
        UTC time when the report was assembled.
    """

    status: HealthStatus
    results: list[ProbeResult] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @classmethod
    def from_results(cls, results: Sequence[ProbeResult]) -> HealthReport:
        """Build a report from an orchestrator result list."""
        return cls(
            status=HealthStatus.worst(*(r.status for r in results)),
            results=list(results),
        )

    def count(self, status: HealthStatus) -> int:
        """Return how many results carry *status*."""
        return sum(1 for r in self.results if r.status is status)

    @property
    def up_count(self) -> int:
        return self.count(HealthStatus.UP)

    @property
    def degraded_count(self) -> int:
        return self.count(HealthStatus.DEGRADED)

    @property
    def down_count(self) -> int:
        return self.count(HealthStatus.DOWN) + self.count(HealthStatus.UNKNOWN)

    def is_healthy(self) -> bool:
        """Return ``True`` iff every component is ``UP``."""
        return self.status is HealthStatus.UP

    def by_type(self) -> dict[str, list[ProbeResult]]:
        """Group results by component type, preserving order within groups."""
        grouped: dict[str, list[ProbeResult]] = {}
        for result in self.results:
            grouped.setdefault(result.component_type, []).append(result)
        return grouped

    def to_dict(self) -> dict[str, object]:
        """Serialise to a plain dict suitable for JSON encoding."""
        return {
            "status": self.status.code,
            "timestamp": self.timestamp.isoformat(),
            "summary": {
                "total": len(self.results),
                "up": self.up_count,
                "degraded": self.degraded_count,
                "down": self.down_count,
            },
            "components": [r.to_dict() for r in self.results],
        }
