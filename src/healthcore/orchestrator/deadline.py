"""Caller-controlled deadline for a report cycle."""
from __future__ import annotations

import threading
import time
from concurrent.futures import Future


class Deadline:
    """Absolute monotonic deadline that the caller can also cancel early.

    Pass one to
    :meth:`~healthcore.orchestrator.orchestrator.HealthOrchestrator.execute_all`
    to bound a report cycle more tightly than the global timeout, or to
    abandon it from another thread.

    Parameters
    ----------
    timeout_seconds:
        Seconds from now until the deadline passes.  ``None`` means the
        deadline never passes on its own and only :meth:`cancel` ends it.

    Examples
    --------
    >>> deadline = Deadline(5.0)
    >>> deadline.expired
    False
    >>> deadline.cancel()
    >>> deadline.expired
    True
    """

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self._expires_at = (
            None if timeout_seconds is None else time.monotonic() + timeout_seconds
        )
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._listeners: list[Future[None]] = []

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(seconds)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        """``True`` once cancelled or past the deadline."""
        remaining = self.remaining()
        return self.cancelled or (remaining is not None and remaining <= 0)

    def remaining(self) -> float | None:
        """Seconds left, ``0.0`` once passed, ``None`` when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def cancel(self) -> None:
        """End the deadline now and wake every waiter."""
        with self._lock:
            self._cancelled.set()
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            if not listener.done():
                listener.set_result(None)

    def as_future(self) -> Future[None]:
        """Return a future that completes when :meth:`cancel` is called."""
        listener: Future[None] = Future()
        with self._lock:
            if self._cancelled.is_set():
                listener.set_result(None)
            else:
                self._listeners.append(listener)
        return listener

    def release(self, listener: Future[None]) -> None:
        """Forget a future obtained from :meth:`as_future`."""
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining()!r}, cancelled={self.cancelled})"


__all__ = ["Deadline"]
