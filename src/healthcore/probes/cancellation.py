"""Cooperative cancellation for probes running on worker threads.

Python cannot interrupt a thread that is blocked inside third-party I/O.
When the orchestrator gives up on a probe (per-call or global timeout) it
cancels the probe's :class:`CancellationToken`; a long-running probe can
poll :func:`current_cancellation_token` between steps, or use
``token.wait(seconds)`` instead of ``time.sleep``, to stop early.  Probes
that never look at the token keep their worker thread busy until they
return on their own.
"""
from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar


class CancellationToken:
    """One-shot, thread-safe cancellation flag.

    Examples
    --------
    >>> token = CancellationToken()
    >>> token.cancelled
    False
    >>> token.cancel("timeout")
    >>> token.cancelled, token.reason
    (True, 'timeout')
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation.  Only the first reason is kept."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to *timeout* seconds; return ``True`` if cancelled."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self._reason!r})"


_current_token: ContextVar[CancellationToken | None] = ContextVar(
    "healthcore_cancellation_token", default=None
)


def current_cancellation_token() -> CancellationToken:
    """Return the token bound to the running probe invocation.

    Outside an orchestrated invocation this is a token that is never
    cancelled.
    """
    token = _current_token.get()
    return token if token is not None else CancellationToken()


@contextmanager
def bind_cancellation_token(token: CancellationToken) -> Iterator[CancellationToken]:
    """Bind *token* as the current token for the duration of the block."""
    reset = _current_token.set(token)
    try:
        yield token
    finally:
        _current_token.reset(reset)


__all__ = [
    "CancellationToken",
    "bind_cancellation_token",
    "current_cancellation_token",
]
