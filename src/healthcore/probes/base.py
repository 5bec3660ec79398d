"""Probe capability for healthcore-sdk.

A probe checks the health of one dependency.  The core never inspects
concrete probe types: it only calls the four methods of :class:`Probe`.

Shipped in this module
----------------------
- Probe          — ABC every probe implements
- AbstractProbe  — template base that times ``do_check()``, converts raised
                   exceptions into DOWN results and flags slow successes as
                   DEGRADED
"""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace
from datetime import timedelta
from typing import Any

from healthcore.schema.errors import InvalidProbeError
from healthcore.schema.result import ERROR_TYPE_KEY, HealthStatus, ProbeResult

logger = logging.getLogger(__name__)


class Probe(ABC):
    """Abstract base class for component health probes.

    Implementations must be thread-safe: the orchestrator may run the same
    probe from different worker threads across report cycles.

    ``execute()`` must never raise.  Every failure, expected or not, belongs
    in the returned :class:`~healthcore.schema.result.ProbeResult`.  The
    orchestrator still guards against probes that break this rule.

    Examples
    --------
    ::

        class PingProbe(Probe):
            def component_name(self) -> str:
                return "db"

            def component_type(self) -> str:
                return "database"

            def execute(self) -> ProbeResult:
                return ProbeResult.up("db", "database")
    """

    @abstractmethod
    def component_name(self) -> str:
        """Return the unique, non-empty component name."""

    @abstractmethod
    def component_type(self) -> str:
        """Return the component category, e.g. ``"database"``."""

    def enabled(self) -> bool:
        """Return whether this probe takes part in reports."""
        return True

    @abstractmethod
    def execute(self) -> ProbeResult:
        """Run the check and return its result."""

    async def execute_async(self) -> ProbeResult:
        """Async variant of :meth:`execute`.

        The default runs :meth:`execute` in a worker thread; probes with a
        native async client can override it.
        """
        return await asyncio.to_thread(self.execute)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.component_name()!r}, "
            f"type={self.component_type()!r})"
        )


class AbstractProbe(Probe):
    """Template base class that handles timing, errors and slow responses.

    Subclasses implement :meth:`do_check` and may raise freely; the
    template guarantees :meth:`execute` returns a result.

    Parameters
    ----------
    component_name:
        Unique name of the component.
    component_type:
        Category of the component.
    degradation_threshold:
        When set, an ``UP`` result slower than this is reported as
        ``DEGRADED``.
    is_enabled:
        Initial value returned by :meth:`enabled`.

    Raises
    ------
    InvalidProbeError
        If *component_name* is empty.

    Examples
    --------
    >>> class AlwaysUp(AbstractProbe):
    ...     def do_check(self) -> ProbeResult:
    ...         return self.up(version="1.2")
    >>> AlwaysUp("svc", "http").execute().status
    <HealthStatus.UP: 'UP'>
    """

    def __init__(
        self,
        component_name: str,
        component_type: str,
        degradation_threshold: timedelta | None = None,
        is_enabled: bool = True,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if not component_name or not component_name.strip():
            raise InvalidProbeError("Probe component name cannot be empty")
        self._component_name = component_name
        self._component_type = component_type or "unknown"
        self._degradation_threshold = degradation_threshold
        self._enabled = is_enabled
        self._clock = clock

    def component_name(self) -> str:
        return self._component_name

    def component_type(self) -> str:
        return self._component_type

    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, value: bool) -> None:
        self._enabled = value

    @abstractmethod
    def do_check(self) -> ProbeResult:
        """Perform the actual check.  May raise for unexpected errors."""

    # ------------------------------------------------------------------
    # Result helpers bound to this probe's name and type
    # ------------------------------------------------------------------

    def up(self, **metadata: Any) -> ProbeResult:
        return ProbeResult.up(self._component_name, self._component_type, **metadata)

    def degraded(self, reason: str, **metadata: Any) -> ProbeResult:
        return ProbeResult.degraded(
            self._component_name, self._component_type, reason=reason, **metadata
        )

    def down(self, error: str, **metadata: Any) -> ProbeResult:
        return ProbeResult.down(
            self._component_name, self._component_type, error=error, **metadata
        )

    # ------------------------------------------------------------------
    # Template
    # ------------------------------------------------------------------

    def execute(self) -> ProbeResult:
        logger.debug(
            "Starting health check for component %r of type %r",
            self._component_name,
            self._component_type,
        )
        start = self._clock()
        try:
            result = self.do_check()
        except Exception as exc:
            return self._failed(exc, start)
        return self._completed(result, start)

    def _completed(self, result: ProbeResult, start: float) -> ProbeResult:
        elapsed = timedelta(seconds=max(0.0, self._clock() - start))
        if result.latency == timedelta(0):
            result = replace(result, latency=elapsed)
        result = self._apply_degradation(result)
        self._log_result(result)
        return result

    def _failed(self, exc: Exception, start: float) -> ProbeResult:
        elapsed = timedelta(seconds=max(0.0, self._clock() - start))
        logger.warning(
            "Health check failed for component %r: %s", self._component_name, exc
        )
        return ProbeResult(
            component_name=self._component_name,
            component_type=self._component_type,
            status=HealthStatus.DOWN,
            latency=elapsed,
            error_message=str(exc) or type(exc).__name__,
            metadata={ERROR_TYPE_KEY: type(exc).__name__},
        )

    def _apply_degradation(self, result: ProbeResult) -> ProbeResult:
        threshold = self._degradation_threshold
        if threshold is None or result.status is not HealthStatus.UP:
            return result
        if result.latency <= threshold:
            return result
        return replace(
            result,
            status=HealthStatus.DEGRADED,
            error_message=(
                f"Latency {result.latency_ms}ms exceeded degradation threshold "
                f"{int(threshold / timedelta(milliseconds=1))}ms"
            ),
        ).with_metadata(degradationThresholdMs=int(threshold / timedelta(milliseconds=1)))

    def _log_result(self, result: ProbeResult) -> None:
        if result.is_healthy:
            logger.debug(
                "component=%s type=%s status=UP latency_ms=%d",
                self._component_name,
                self._component_type,
                result.latency_ms,
            )
        else:
            logger.warning(
                'component=%s type=%s status=%s latency_ms=%d error="%s"',
                self._component_name,
                self._component_type,
                result.status.code,
                result.latency_ms,
                result.error_message or "Unknown error",
            )


__all__ = ["Probe", "AbstractProbe"]
