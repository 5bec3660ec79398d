"""Status-aware result cache for healthcore-sdk.

Healthy results are cached longer than failing ones, so a dependency that
goes down is re-checked quickly while a healthy one is not probed on every
report.

Shipped in this module
----------------------
- CacheEntry    — one stored result with its TTL and expiry
- CacheMetrics  — point-in-time cache effectiveness counters
- ResultCache   — per-component cache with compute-once misses,
                  stale-on-error fallback and a background sweeper
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from types import TracebackType

from healthcore.schema.config import CacheConfig
from healthcore.schema.result import HealthStatus, ProbeResult
from healthcore.telemetry.collector import HealthMetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached result.

    Attributes
    ----------
    result:
        The stored result.
    ttl:
        Time-to-live in seconds.
    stored_at:
        Cache clock reading when the entry was stored.
    """

    result: ProbeResult
    ttl: float
    stored_at: float

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class CacheMetrics:
    """Snapshot returned by :meth:`ResultCache.metrics`.

    Attributes
    ----------
    hits:
        Lookups answered from a fresh entry.
    misses:
        Lookups that had to compute.
    stale_hits:
        Failed computations answered with a stale entry.
    computations:
        Calls made to compute functions.
    invalidations:
        Entries removed by ``invalidate``/``invalidate_all``.
    evictions:
        Expired entries removed by the sweeper.
    size:
        Entries currently stored.
    total_computation_seconds:
        Time spent inside compute functions.
    """

    hits: int
    misses: int
    stale_hits: int
    computations: int
    invalidations: int
    evictions: int
    size: int
    total_computation_seconds: float

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    @property
    def average_computation_ms(self) -> float:
        if not self.computations:
            return 0.0
        return self.total_computation_seconds / self.computations * 1000.0


class ResultCache:
    """Per-component cache of :class:`~healthcore.schema.result.ProbeResult` values.

    TTL is chosen from the result status: UP uses the healthy TTL, DEGRADED
    the degraded TTL, DOWN the unhealthy TTL and UNKNOWN the error TTL.

    Concurrent misses for the same component are serialised by a per-key
    lock so the compute function runs once; other components are never
    blocked.

    Parameters
    ----------
    config:
        TTLs and behaviour.  Defaults to ``CacheConfig()``.
    clock:
        Monotonic clock returning seconds.  Inject a fake in tests.
    metrics:
        Optional collector that receives hit and miss events.
    start_sweeper:
        Start the background thread that removes expired entries every
        ``cleanup_interval_seconds``.

    Examples
    --------
    >>> with ResultCache(start_sweeper=False) as cache:
    ...     first = cache.get_or_compute("db", lambda: ProbeResult.up("db"))
    ...     second = cache.get_or_compute("db", lambda: ProbeResult.down("db"))
    >>> second.status
    <HealthStatus.UP: 'UP'>
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        metrics: HealthMetricsCollector | None = None,
        start_sweeper: bool = True,
    ) -> None:
        self._config = config or CacheConfig()
        self._clock = clock
        self._metrics = metrics
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._key_locks: dict[str, threading.Lock] = {}

        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._computations = 0
        self._invalidations = 0
        self._evictions = 0
        self._computation_seconds = 0.0

        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None
        if start_sweeper and self._config.enabled:
            self._sweeper = threading.Thread(
                target=self._sweep_loop, name="healthcore-cache-sweeper", daemon=True
            )
            self._sweeper.start()

    @property
    def config(self) -> CacheConfig:
        return self._config

    # ------------------------------------------------------------------
    # Lookup and compute
    # ------------------------------------------------------------------

    def get_or_compute(
        self,
        component_name: str,
        fn: Callable[[], ProbeResult],
        component_type: str = "unknown",
    ) -> ProbeResult:
        """Return the cached result for *component_name* or compute a new one.

        If *fn* raises, the previous entry is returned marked
        ``stale=True`` when ``return_stale_on_error`` is set and one exists;
        otherwise a synthetic ``DOWN`` result is stored with the error TTL
        and returned.  With caching disabled, *fn* is called directly and
        its exceptions propagate.

        Parameters
        ----------
        component_name:
            Cache key.
        fn:
            Zero-argument callable producing a fresh result.
        component_type:
            Component type stamped on synthetic results.
        """
        if not self._config.enabled:
            return fn()

        cached = self._fresh(component_name)
        if cached is not None:
            self._on_hit(component_name)
            return cached

        with self._key_lock(component_name):
            cached = self._fresh(component_name)
            if cached is not None:
                self._on_hit(component_name)
                return cached

            self._on_miss(component_name)
            start = self._clock()
            try:
                result = fn()
            except Exception as exc:
                self._account_computation(start)
                return self._on_compute_error(component_name, component_type, exc)
            self._account_computation(start)
            self._store(result, self._config.ttl_for(result.status))
            return result

    def get(self, component_name: str) -> ProbeResult | None:
        """Return the fresh cached result for *component_name*, or ``None``."""
        return self._fresh(component_name)

    def contains(self, component_name: str) -> bool:
        """Return ``True`` if a fresh entry exists for *component_name*."""
        return self._fresh(component_name) is not None

    def put(self, result: ProbeResult) -> None:
        """Store *result* with the TTL for its status."""
        self._store(result, self._config.ttl_for(result.status))

    def pre_warm(self, results: Iterable[ProbeResult]) -> int:
        """Seed the cache with *results*; return how many were stored."""
        count = 0
        for result in results:
            self.put(result)
            count += 1
        logger.info("Pre-warmed result cache with %d entr(y/ies)", count)
        return count

    def ttl_for(self, status: HealthStatus) -> float:
        return self._config.ttl_for(status)

    # ------------------------------------------------------------------
    # Invalidation and sweeping
    # ------------------------------------------------------------------

    def invalidate(self, component_name: str) -> bool:
        """Remove the entry for *component_name*; return whether one existed."""
        with self._lock:
            removed = self._entries.pop(component_name, None) is not None
            self._key_locks.pop(component_name, None)
            if removed:
                self._invalidations += 1
        if removed:
            logger.debug("Invalidated cached result for %r", component_name)
        return removed

    def invalidate_all(self) -> int:
        """Remove every entry; return how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._key_locks.clear()
            self._invalidations += count
        logger.info("Invalidated %d cached result(s)", count)
        return count

    def sweep(self) -> int:
        """Remove expired entries now; return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._evictions += len(expired)
        if expired:
            logger.debug("Swept %d expired cache entr(y/ies)", len(expired))
        return len(expired)

    def size(self) -> int:
        """Return the number of stored entries, expired ones not yet swept included."""
        with self._lock:
            return len(self._entries)

    def metrics(self) -> CacheMetrics:
        """Return a :class:`CacheMetrics` snapshot."""
        with self._lock:
            return CacheMetrics(
                hits=self._hits,
                misses=self._misses,
                stale_hits=self._stale_hits,
                computations=self._computations,
                invalidations=self._invalidations,
                evictions=self._evictions,
                size=len(self._entries),
                total_computation_seconds=self._computation_seconds,
            )

    def log_metrics(self) -> None:
        m = self.metrics()
        logger.info(
            "Result cache: size=%d hits=%d misses=%d stale_hits=%d hit_rate=%.2f "
            "avg_compute_ms=%.1f",
            m.size,
            m.hits,
            m.misses,
            m.stale_hits,
            m.hit_rate,
            m.average_computation_ms,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self, timeout: float | None = 1.0) -> None:
        """Stop the background sweeper.  Safe to call more than once."""
        self._stop.set()
        sweeper = self._sweeper
        if sweeper is not None and sweeper.is_alive():
            sweeper.join(timeout)
        self._sweeper = None

    def __enter__(self) -> ResultCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fresh(self, component_name: str) -> ProbeResult | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(component_name)
        if entry is None or entry.is_expired(now):
            return None
        return entry.result

    def _store(self, result: ProbeResult, ttl: float) -> None:
        entry = CacheEntry(result=result, ttl=ttl, stored_at=self._clock())
        with self._lock:
            self._entries[result.component_name] = entry
        logger.debug(
            "Cached result for %r with status %s for %gs",
            result.component_name,
            result.status.code,
            ttl,
        )

    def _key_lock(self, component_name: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(component_name)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[component_name] = lock
            return lock

    def _on_hit(self, component_name: str) -> None:
        with self._lock:
            self._hits += 1
        logger.debug("Cache hit for %r", component_name)
        if self._metrics is not None:
            self._metrics.record_cache_hit(component_name)

    def _on_miss(self, component_name: str) -> None:
        with self._lock:
            self._misses += 1
        logger.debug("Cache miss for %r", component_name)
        if self._metrics is not None:
            self._metrics.record_cache_miss(component_name)

    def _account_computation(self, start: float) -> None:
        elapsed = max(0.0, self._clock() - start)
        with self._lock:
            self._computations += 1
            self._computation_seconds += elapsed

    def _on_compute_error(
        self, component_name: str, component_type: str, exc: Exception
    ) -> ProbeResult:
        with self._lock:
            previous = self._entries.get(component_name)
            if previous is not None and self._config.return_stale_on_error:
                self._stale_hits += 1
        if previous is not None and self._config.return_stale_on_error:
            logger.warning(
                "Health check for %r failed, returning stale cached result: %s",
                component_name,
                exc,
            )
            return previous.result.with_metadata(stale=True, staleReason=str(exc))

        logger.warning(
            "Health check for %r failed with no usable cached result: %s",
            component_name,
            exc,
        )
        synthetic = ProbeResult.from_exception(component_name, component_type, exc)
        self._store(synthetic, self._config.error_ttl_seconds)
        return synthetic

    def _sweep_loop(self) -> None:
        interval = self._config.cleanup_interval_seconds
        while not self._stop.wait(interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Result cache sweep failed")

    def __repr__(self) -> str:
        return f"ResultCache(size={self.size()}, enabled={self._config.enabled})"


__all__ = ["CacheEntry", "CacheMetrics", "ResultCache"]
