"""Per-component circuit breakers.

A circuit breaker stops the orchestrator from hammering a dependency that
keeps failing, and lets it back in gradually once the dependency recovers.

States
------
CLOSED     : Calls pass.  Outcomes are kept in a time-based sliding window.
OPEN       : Calls are rejected with a synthetic ``DOWN`` result.
HALF_OPEN  : A limited number of trial calls pass; the rest are rejected
             with a synthetic ``DEGRADED`` result.

Valid transitions
-----------------
CLOSED     → OPEN       (failure threshold reached within the window)
OPEN       → HALF_OPEN  (open wait elapsed since the last failure)
HALF_OPEN  → CLOSED     (enough trial successes)
HALF_OPEN  → OPEN       (any failure)
any        → CLOSED     (explicit reset)
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from healthcore.schema.config import CircuitBreakerConfig
from healthcore.schema.result import HealthStatus, ProbeResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

TransitionCallback = Callable[[str, "CircuitState", "CircuitState"], None]
"""Callback signature: (component_name, from_state, to_state) → None."""


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerState:
    """Point-in-time view of one breaker.

    Times are readings of the breaker's monotonic clock, ``None`` when the
    event has not happened yet.
    """

    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: float | None
    last_success_time: float | None
    state_transition_time: float


# ---------------------------------------------------------------------------
# Breaker
# ---------------------------------------------------------------------------


class CircuitBreaker:
    """Circuit breaker guarding a single component.

    Parameters
    ----------
    name:
        Component name; used in logs and synthetic results.
    config:
        Thresholds and timings.  Defaults to ``CircuitBreakerConfig()``.
    clock:
        Monotonic clock returning seconds.  Inject a fake in tests.

    Examples
    --------
    >>> breaker = CircuitBreaker("db")
    >>> breaker.call(lambda: ProbeResult.up("db")).status
    <HealthStatus.UP: 'UP'>
    >>> breaker.state
    <CircuitState.CLOSED: 'CLOSED'>
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._callbacks: list[TransitionCallback] = []

        self._state = CircuitState.CLOSED
        self._window: deque[tuple[float, bool]] = deque()
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: float | None = None
        self._last_success_time: float | None = None
        self._state_transition_time = clock()
        self._generation = 0
        self._trials_in_flight = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def snapshot(self) -> CircuitBreakerState:
        """Return a consistent :class:`CircuitBreakerState` snapshot."""
        with self._lock:
            if self._state is CircuitState.CLOSED:
                self._prune(self._clock())
            return CircuitBreakerState(
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                last_failure_time=self._last_failure_time,
                last_success_time=self._last_success_time,
                state_transition_time=self._state_transition_time,
            )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def call(
        self,
        fn: Callable[[], ProbeResult],
        component_type: str = "unknown",
    ) -> ProbeResult:
        """Run *fn* if the breaker permits it.

        A rejected call returns a synthetic result without invoking *fn*.
        An exception raised by *fn* is recorded as a failure and re-raised.

        Parameters
        ----------
        fn:
            Zero-argument callable producing the probe result.
        component_type:
            Component type stamped on synthetic results.
        """
        if not self._config.enabled:
            return fn()

        with self._lock:
            now = self._clock()
            if self._state is CircuitState.OPEN:
                if not self._open_wait_elapsed(now):
                    return self._rejection(
                        component_type,
                        HealthStatus.DOWN,
                        "Circuit breaker is OPEN",
                    )
                self._transition(CircuitState.HALF_OPEN, now)
                return self._rejection(
                    component_type,
                    HealthStatus.DEGRADED,
                    "Circuit breaker is HALF_OPEN, testing recovery",
                )
            trial_generation: int | None = None
            if self._state is CircuitState.HALF_OPEN:
                permitted = self._config.permitted_number_of_calls_in_half_open_state
                if self._trials_in_flight + self._success_count >= permitted:
                    return self._rejection(
                        component_type,
                        HealthStatus.DEGRADED,
                        "Circuit breaker is HALF_OPEN, trial limit reached",
                    )
                self._trials_in_flight += 1
                trial_generation = self._generation

        try:
            result = fn()
        except Exception:
            self._record(failure=True, trial_generation=trial_generation)
            raise
        self._record(
            failure=self._is_failure(result.status), trial_generation=trial_generation
        )
        return result

    def record_success(self) -> None:
        """Record a success observed outside :meth:`call`."""
        self._record(failure=False, trial_generation=None)

    def record_failure(self) -> None:
        """Record a failure observed outside :meth:`call`, such as a timeout."""
        self._record(failure=True, trial_generation=None)

    def reset(self) -> None:
        """Force the breaker back to CLOSED with empty counters."""
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED, self._clock())
            else:
                self._clear_counters()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on_transition(self, callback: TransitionCallback) -> None:
        """Register a callable ``(name, from_state, to_state) → None``."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: TransitionCallback) -> bool:
        with self._lock:
            try:
                self._callbacks.remove(callback)
                return True
            except ValueError:
                return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_failure(self, status: HealthStatus) -> bool:
        if status is HealthStatus.UP:
            return False
        if status is HealthStatus.DEGRADED:
            return self._config.count_degraded_as_failure
        return True

    def _open_wait_elapsed(self, now: float) -> bool:
        since = (
            self._last_failure_time
            if self._last_failure_time is not None
            else self._state_transition_time
        )
        return now - since >= self._config.wait_duration_in_open_state_seconds

    def _record(self, failure: bool, trial_generation: int | None) -> None:
        with self._lock:
            now = self._clock()
            is_trial = trial_generation is not None and trial_generation == self._generation
            if is_trial:
                self._trials_in_flight = max(0, self._trials_in_flight - 1)

            if failure:
                self._last_failure_time = now
                self._failure_count += 1
            else:
                self._last_success_time = now

            if self._state is CircuitState.CLOSED:
                self._window.append((now, failure))
                self._prune(now)
                if self._threshold_reached():
                    self._transition(CircuitState.OPEN, now)
            elif self._state is CircuitState.HALF_OPEN:
                if failure:
                    self._transition(CircuitState.OPEN, now)
                elif is_trial:
                    self._success_count += 1
                    permitted = self._config.permitted_number_of_calls_in_half_open_state
                    if self._success_count >= permitted:
                        self._transition(CircuitState.CLOSED, now)

    def _prune(self, now: float) -> None:
        horizon = now - self._config.sliding_window_seconds
        while self._window and self._window[0][0] < horizon:
            self._window.popleft()
        self._failure_count = sum(1 for _, failed in self._window if failed)
        self._success_count = len(self._window) - self._failure_count

    def _threshold_reached(self) -> bool:
        failures = self._failure_count
        total = failures + self._success_count
        if total == 0 or total < self._config.minimum_number_of_calls:
            return False
        return failures / total >= self._config.failure_rate_threshold

    def _clear_counters(self) -> None:
        self._window.clear()
        self._failure_count = 0
        self._success_count = 0
        self._trials_in_flight = 0

    def _transition(self, new_state: CircuitState, now: float) -> None:
        previous = self._state
        if previous is new_state:
            return
        self._state = new_state
        self._state_transition_time = now
        self._generation += 1
        self._trials_in_flight = 0
        if new_state is CircuitState.CLOSED:
            self._clear_counters()
        elif new_state is CircuitState.HALF_OPEN:
            self._success_count = 0
        elif new_state is CircuitState.OPEN:
            self._window.clear()

        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "Circuit breaker for %r transitioned %s -> %s (failures=%d)",
            self._name,
            previous.value,
            new_state.value,
            self._failure_count,
        )
        for callback in list(self._callbacks):
            try:
                callback(self._name, previous, new_state)
            except Exception as exc:
                logger.warning(
                    "Transition callback raised for circuit breaker %r: %s",
                    self._name,
                    exc,
                )

    def _rejection(
        self, component_type: str, status: HealthStatus, message: str
    ) -> ProbeResult:
        logger.debug("Circuit breaker for %r rejected call: %s", self._name, message)
        return ProbeResult(
            component_name=self._name,
            component_type=component_type,
            status=status,
            error_message=message,
            metadata={
                "circuitBreakerState": self._state.value,
                "failureCount": self._failure_count,
                "successCount": self._success_count,
            },
        )

    def __repr__(self) -> str:
        return f"CircuitBreaker(name={self._name!r}, state={self.state.value!r})"


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class CircuitBreakerManager:
    """Lazily creates and tracks one :class:`CircuitBreaker` per component.

    The manager's own lock is held only while looking up or creating a
    breaker; each breaker serialises its own state.

    Parameters
    ----------
    config:
        Configuration shared by every breaker.
    clock:
        Monotonic clock passed to every breaker.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._breakers: dict[str, CircuitBreaker] = {}
        self._callbacks: list[TransitionCallback] = []

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    def get(self, component_name: str) -> CircuitBreaker:
        """Return the breaker for *component_name*, creating it if needed."""
        with self._lock:
            breaker = self._breakers.get(component_name)
            if breaker is None:
                breaker = CircuitBreaker(component_name, self._config, self._clock)
                for callback in self._callbacks:
                    breaker.on_transition(callback)
                self._breakers[component_name] = breaker
                logger.debug("Created circuit breaker for %r", component_name)
            return breaker

    def call(
        self,
        component_name: str,
        fn: Callable[[], ProbeResult],
        component_type: str = "unknown",
    ) -> ProbeResult:
        """Run *fn* through the breaker for *component_name*."""
        return self.get(component_name).call(fn, component_type)

    def on_transition(self, callback: TransitionCallback) -> None:
        """Attach *callback* to every current and future breaker."""
        with self._lock:
            self._callbacks.append(callback)
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.on_transition(callback)

    def all_states(self) -> dict[str, CircuitState]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: breaker.state for name, breaker in breakers.items()}

    def snapshots(self) -> dict[str, CircuitBreakerState]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: breaker.snapshot() for name, breaker in breakers.items()}

    def open_count(self) -> int:
        """Return how many breakers are currently OPEN."""
        return sum(1 for s in self.all_states().values() if s is CircuitState.OPEN)

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
        logger.info("Reset %d circuit breaker(s)", len(breakers))

    def remove(self, component_name: str) -> bool:
        with self._lock:
            return self._breakers.pop(component_name, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._breakers)

    def __repr__(self) -> str:
        return f"CircuitBreakerManager(breakers={len(self)}, open={self.open_count()})"


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerManager",
    "CircuitBreakerState",
    "CircuitState",
    "TransitionCallback",
]
