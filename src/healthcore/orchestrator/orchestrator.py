"""Health-check orchestrator for healthcore-sdk.

``HealthOrchestrator`` runs every enabled probe in a
:class:`~healthcore.registry.registry.ProbeRegistry` concurrently and
returns one result per probe, in registry order, within a bounded time.

Per component the pipeline is::

    ResultCache -> CircuitBreaker -> probe on the worker pool (per-call timeout)

With ``bypass_cache=True`` the cache is neither read nor written.

Shipped in this module
----------------------
- OrchestratorStatistics  — counters returned by ``statistics()``
- HealthOrchestrator      — bounded-parallelism report runner
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import timedelta
from types import TracebackType

from pydantic import ValidationError

from healthcore.cache.result_cache import CacheMetrics, ResultCache
from healthcore.orchestrator.deadline import Deadline
from healthcore.probes.base import Probe
from healthcore.probes.cancellation import CancellationToken, bind_cancellation_token
from healthcore.registry.registry import ProbeRegistry
from healthcore.resilience.circuit_breaker import CircuitBreakerManager
from healthcore.schema.config import (
    CacheConfig,
    CircuitBreakerConfig,
    HealthCoreConfig,
    OrchestratorConfig,
)
from healthcore.schema.errors import (
    ConfigurationError,
    OrchestratorClosedError,
    ProbeFaultError,
    ProbeTimeoutError,
    RegistryError,
)
from healthcore.schema.result import (
    ERROR_TYPE_KEY,
    TIMEOUT_ERROR_TYPE,
    HealthStatus,
    ProbeResult,
)
from healthcore.telemetry.collector import HealthMetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorStatistics:
    """Counters returned by :meth:`HealthOrchestrator.statistics`.

    Attributes
    ----------
    cycles:
        Completed ``execute_all`` calls.
    executions:
        Component results produced, across all cycles and single runs.
    timeouts:
        Results that were per-call or orchestrator timeouts.
    registered_probes:
        Probes currently in the registry.
    circuit_breakers:
        Breakers created so far.
    open_circuit_breakers:
        Breakers currently OPEN.
    cache:
        Cache counters snapshot.
    """

    cycles: int
    executions: int
    timeouts: int
    registered_probes: int
    circuit_breakers: int
    open_circuit_breakers: int
    cache: CacheMetrics

    @property
    def cache_hits(self) -> int:
        return self.cache.hits

    @property
    def cache_size(self) -> int:
        return self.cache.size


@dataclass
class _Task:
    probe: Probe
    name: str
    component_type: str
    future: Future[ProbeResult]
    token: CancellationToken


class HealthOrchestrator:
    """Run registered probes concurrently under per-call and global timeouts.

    Every enabled probe yields exactly one result, in registry order.  A
    probe that raises, hangs or returns garbage only affects its own
    result; nothing escapes :meth:`execute_all`.

    Two thread pools of ``worker_pool_size`` threads are used: component
    pipelines run on ``healthcore-dispatch-*`` threads and the probes
    themselves on ``healthcore-probe-*`` threads, so a pipeline waiting on
    its probe never occupies the slot the probe needs.

    Timeouts are enforced on the waiting side.  When a probe times out its
    :class:`~healthcore.probes.cancellation.CancellationToken` is cancelled
    and a queued probe never starts, but Python cannot interrupt a thread
    blocked inside third-party I/O: such a probe keeps its worker thread
    until it returns by itself.  Probes should use their client library's
    own timeouts, or poll
    :func:`~healthcore.probes.cancellation.current_cancellation_token`.

    Parameters
    ----------
    registry:
        Source of probes, consulted at the start of every cycle.
    cache_config:
        Result cache settings.  Defaults to ``CacheConfig()``.
    circuit_breaker_config:
        Circuit breaker settings.  Defaults to ``CircuitBreakerConfig()``.
    worker_pool_size:
        Threads per pool.  Defaults to ``os.cpu_count()``.
    per_call_timeout:
        Seconds (or ``timedelta``) one probe may take.
    global_timeout:
        Seconds (or ``timedelta``) a whole cycle may take.
    metrics:
        Optional collector fed with results, cache events and transitions.
    clock:
        Monotonic clock for the cache and breakers.

    Raises
    ------
    ConfigurationError
        If the pool size or timeouts are invalid.

    Examples
    --------
    ::

        registry = ProbeRegistry()
        registry.register(CallableProbe("db", "database", ping_db))
        with HealthOrchestrator(registry, per_call_timeout=2, global_timeout=5) as orch:
            for result in orch.execute_all():
                print(result)
    """

    def __init__(
        self,
        registry: ProbeRegistry,
        cache_config: CacheConfig | None = None,
        circuit_breaker_config: CircuitBreakerConfig | None = None,
        worker_pool_size: int | None = None,
        per_call_timeout: float | timedelta = 10.0,
        global_timeout: float | timedelta = 30.0,
        metrics: HealthMetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        try:
            settings = OrchestratorConfig(
                **({} if worker_pool_size is None else {"worker_pool_size": worker_pool_size}),
                per_call_timeout_seconds=_seconds(per_call_timeout),
                global_timeout_seconds=_seconds(global_timeout),
            )
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid orchestrator settings: {exc}",
                context={"errors": exc.errors(include_url=False)},
            ) from exc

        self._registry = registry
        self._settings = settings
        self._metrics = metrics
        self._cache = ResultCache(cache_config, clock=clock, metrics=metrics)
        self._breakers = CircuitBreakerManager(circuit_breaker_config, clock=clock)
        if metrics is not None:
            self._breakers.on_transition(metrics.record_transition)

        self._dispatch_pool = ThreadPoolExecutor(
            max_workers=settings.worker_pool_size,
            thread_name_prefix="healthcore-dispatch",
        )
        self._probe_pool = ThreadPoolExecutor(
            max_workers=settings.worker_pool_size,
            thread_name_prefix="healthcore-probe",
        )

        self._stats_lock = threading.Lock()
        self._cycles = 0
        self._executions = 0
        self._timeouts = 0
        self._closed = False

        logger.info(
            "Initialised HealthOrchestrator: workers=%d per_call_timeout=%gs "
            "global_timeout=%gs cache=%s circuit_breaker=%s",
            settings.worker_pool_size,
            settings.per_call_timeout_seconds,
            settings.global_timeout_seconds,
            self._cache.config.enabled,
            self._breakers.config.enabled,
        )

    @classmethod
    def from_config(
        cls,
        registry: ProbeRegistry,
        config: HealthCoreConfig | None = None,
        metrics: HealthMetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> HealthOrchestrator:
        """Build an orchestrator from a :class:`HealthCoreConfig`."""
        config = config or HealthCoreConfig()
        return cls(
            registry,
            cache_config=config.cache,
            circuit_breaker_config=config.circuit_breaker,
            worker_pool_size=config.orchestrator.worker_pool_size,
            per_call_timeout=config.orchestrator.per_call_timeout_seconds,
            global_timeout=config.orchestrator.global_timeout_seconds,
            metrics=metrics,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def registry(self) -> ProbeRegistry:
        return self._registry

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def circuit_breakers(self) -> CircuitBreakerManager:
        return self._breakers

    @property
    def settings(self) -> OrchestratorConfig:
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute_all(
        self,
        bypass_cache: bool = False,
        deadline: Deadline | None = None,
    ) -> list[ProbeResult]:
        """Run every enabled probe and return their results in registry order.

        Parameters
        ----------
        bypass_cache:
            Skip the result cache for this cycle.  Circuit breakers still
            apply.
        deadline:
            Optional caller deadline.  The cycle ends at the earlier of the
            deadline and the global timeout, or as soon as the deadline is
            cancelled.  Unfinished components are reported ``DOWN`` with
            ``orchestratorTimeout=True``.  Such results are not cached.  A
            circuit breaker failure is recorded for them only when the
            component's pipeline never started; a pipeline that did start
            records its own outcome with the breaker when it finishes.

        Raises
        ------
        OrchestratorClosedError
            If :meth:`close` has been called.
        """
        self._ensure_open()
        started = time.monotonic()
        probes = [p for p in self._registry.all_probes() if self._is_enabled(p)]
        if not probes:
            logger.info("No enabled probes registered; returning empty report")
            self._record_cycle(started, [])
            return []

        logger.debug(
            "Executing %d health check(s), bypass_cache=%s", len(probes), bypass_cache
        )
        tasks = [self._submit(probe, bypass_cache) for probe in probes]
        self._wait(tasks, started, deadline)

        results = [self._collect(task, started) for task in tasks]
        self._record_cycle(started, results)
        return results

    def execute_single(
        self, component_name: str, bypass_cache: bool = False
    ) -> ProbeResult:
        """Run one component's pipeline in the calling thread.

        The probe runs even if it is disabled.

        Raises
        ------
        RegistryError
            If no probe is registered under *component_name*.
        OrchestratorClosedError
            If :meth:`close` has been called.
        """
        self._ensure_open()
        probe = self._registry.get(component_name)
        if probe is None:
            raise RegistryError(
                f"No probe registered for component {component_name!r}",
                context={"component_name": component_name},
            )
        result = self._run_pipeline(
            probe,
            component_name,
            probe.component_type(),
            bypass_cache,
            CancellationToken(),
        )
        self._record_results([result])
        return result

    async def execute_all_async(
        self,
        bypass_cache: bool = False,
        deadline: Deadline | None = None,
    ) -> list[ProbeResult]:
        """Async wrapper around :meth:`execute_all`.

        Cancelling the awaiting task cancels the cycle's deadline, so the
        worker thread returns promptly with timeout results.
        """
        deadline = deadline or Deadline()
        try:
            return await asyncio.to_thread(self.execute_all, bypass_cache, deadline)
        except asyncio.CancelledError:
            deadline.cancel()
            raise

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def statistics(self) -> OrchestratorStatistics:
        with self._stats_lock:
            cycles, executions, timeouts = self._cycles, self._executions, self._timeouts
        return OrchestratorStatistics(
            cycles=cycles,
            executions=executions,
            timeouts=timeouts,
            registered_probes=len(self._registry),
            circuit_breakers=len(self._breakers),
            open_circuit_breakers=self._breakers.open_count(),
            cache=self._cache.metrics(),
        )

    def log_statistics(self) -> None:
        stats = self.statistics()
        logger.info(
            "Orchestrator: cycles=%d executions=%d timeouts=%d probes=%d "
            "breakers=%d open=%d cache_size=%d cache_hit_rate=%.2f",
            stats.cycles,
            stats.executions,
            stats.timeouts,
            stats.registered_probes,
            stats.circuit_breakers,
            stats.open_circuit_breakers,
            stats.cache_size,
            stats.cache.hit_rate,
        )

    def clear_cache(self) -> None:
        """Drop every cached result and reset every circuit breaker."""
        self._cache.invalidate_all()
        self._breakers.reset_all()
        logger.info("Cleared health check cache and circuit breakers")

    def forget(self, component_name: str) -> bool:
        """Drop the cached result and circuit breaker kept for *component_name*.

        Call after deregistering a probe so per-component state does not
        accumulate.  Returns ``True`` if anything was removed.
        """
        had_entry = self._cache.invalidate(component_name)
        had_breaker = self._breakers.remove(component_name)
        logger.debug("Forgot state for component %r", component_name)
        return had_entry or had_breaker

    def close(self) -> None:
        """Stop the worker pools and the cache sweeper.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._cache.shutdown()
        self._dispatch_pool.shutdown(wait=False, cancel_futures=True)
        self._probe_pool.shutdown(wait=False, cancel_futures=True)
        logger.info("HealthOrchestrator closed")

    def __enter__(self) -> HealthOrchestrator:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _submit(self, probe: Probe, bypass_cache: bool) -> _Task:
        name = probe.component_name()
        component_type = probe.component_type()
        token = CancellationToken()
        future = self._dispatch_pool.submit(
            self._run_pipeline, probe, name, component_type, bypass_cache, token
        )
        return _Task(probe, name, component_type, future, token)

    def _run_pipeline(
        self,
        probe: Probe,
        name: str,
        component_type: str,
        bypass_cache: bool,
        token: CancellationToken,
    ) -> ProbeResult:
        def guarded() -> ProbeResult:
            return self._breakers.call(
                name, lambda: self._invoke(probe, name, component_type, token), component_type
            )

        try:
            if bypass_cache:
                return guarded()
            return self._cache.get_or_compute(name, guarded, component_type)
        except Exception as exc:
            return ProbeResult.from_exception(name, component_type, exc)

    def _invoke(
        self,
        probe: Probe,
        name: str,
        component_type: str,
        token: CancellationToken,
    ) -> ProbeResult:
        timeout = self._settings.per_call_timeout_seconds
        future = self._probe_pool.submit(_execute_probe, probe, token)
        done, _ = wait([future], timeout=timeout)
        if not done:
            future.cancel()
            token.cancel("per-call timeout")
            logger.warning(
                "Health check for %r timed out after %gs", name, timeout
            )
            raise ProbeTimeoutError(name, component_type, timeout)

        error = future.exception()
        if error is not None:
            logger.error(
                "Health check for %r raised %s: %s", name, type(error).__name__, error
            )
            raise ProbeFaultError(name, component_type, error) from error

        result = future.result()
        if not isinstance(result, ProbeResult):
            fault = TypeError(
                f"execute() returned {type(result).__name__}, expected ProbeResult"
            )
            logger.error("Health check for %r returned an invalid value", name)
            raise ProbeFaultError(name, component_type, fault) from fault
        return result

    def _wait(
        self, tasks: list[_Task], started: float, deadline: Deadline | None
    ) -> None:
        ends_at = started + self._settings.global_timeout_seconds
        if deadline is not None:
            remaining = deadline.remaining()
            if remaining is not None:
                ends_at = min(ends_at, time.monotonic() + remaining)
            wake: Future[None] = deadline.as_future()
        else:
            wake = Future()

        pending: set[Future[object]] = {task.future for task in tasks}
        try:
            while pending:
                remaining_seconds = ends_at - time.monotonic()
                if remaining_seconds <= 0 or wake.done():
                    break
                done, _ = wait(
                    pending | {wake},
                    timeout=remaining_seconds,
                    return_when=FIRST_COMPLETED,
                )
                pending -= done
        finally:
            if deadline is not None:
                deadline.release(wake)

        if pending:
            reason = "cancelled" if wake.done() else "timed out"
            logger.warning(
                "Health check cycle %s with %d component(s) still pending",
                reason,
                len(pending),
            )

    def _collect(self, task: _Task, started: float) -> ProbeResult:
        future = task.future
        if future.done() and not future.cancelled():
            try:
                return future.result()
            except Exception as exc:
                return ProbeResult.from_exception(task.name, task.component_type, exc)

        never_started = future.cancel()
        task.token.cancel("orchestrator timeout")
        if never_started:
            self._breakers.get(task.name).record_failure()
        elapsed = timedelta(seconds=max(0.0, time.monotonic() - started))
        return ProbeResult(
            component_name=task.name,
            component_type=task.component_type,
            status=HealthStatus.DOWN,
            latency=elapsed,
            error_message="Health check exceeded orchestrator timeout",
            metadata={
                ERROR_TYPE_KEY: TIMEOUT_ERROR_TYPE,
                "orchestratorTimeout": True,
            },
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_enabled(self, probe: Probe) -> bool:
        try:
            return bool(probe.enabled())
        except Exception as exc:
            logger.warning(
                "enabled() raised for probe %r, treating it as enabled: %s",
                probe.component_name(),
                exc,
            )
            return True

    def _ensure_open(self) -> None:
        if self._closed:
            raise OrchestratorClosedError("HealthOrchestrator has been closed")

    def _record_results(self, results: list[ProbeResult]) -> None:
        timeouts = sum(
            1
            for r in results
            if r.metadata.get("timeout") or r.metadata.get("orchestratorTimeout")
        )
        with self._stats_lock:
            self._executions += len(results)
            self._timeouts += timeouts
        if self._metrics is not None:
            for result in results:
                self._metrics.record_result(result)

    def _record_cycle(self, started: float, results: list[ProbeResult]) -> None:
        duration = time.monotonic() - started
        self._record_results(results)
        with self._stats_lock:
            self._cycles += 1
        if self._metrics is not None:
            self._metrics.record_cycle(duration)
        healthy = sum(1 for r in results if r.status is HealthStatus.UP)
        logger.info(
            "Health check cycle completed: total=%d up=%d not_up=%d duration_ms=%d",
            len(results),
            healthy,
            len(results) - healthy,
            int(duration * 1000),
        )

    def __repr__(self) -> str:
        return (
            f"HealthOrchestrator(probes={len(self._registry)}, "
            f"workers={self._settings.worker_pool_size}, closed={self._closed})"
        )


def _execute_probe(probe: Probe, token: CancellationToken) -> ProbeResult:
    with bind_cancellation_token(token):
        return probe.execute()


def _seconds(value: float | timedelta) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


__all__ = ["HealthOrchestrator", "OrchestratorStatistics"]
