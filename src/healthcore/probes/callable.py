"""Callable probe adapter for healthcore-sdk.

Wraps any zero-argument sync or async callable so it can be registered as a
probe without writing a class.

Shipped in this module
----------------------
- CallableProbe   — adapts a callable returning ``ProbeResult``,
                    ``HealthStatus`` or ``bool``
"""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from healthcore.probes.base import AbstractProbe
from healthcore.schema.errors import InvalidProbeError
from healthcore.schema.result import HealthStatus, ProbeResult


class CallableProbe(AbstractProbe):
    """Adapts a plain callable to the :class:`~healthcore.probes.base.Probe` interface.

    The callable's return value is interpreted as follows:

    - ``ProbeResult`` — returned as-is
    - ``HealthStatus`` — wrapped in a result with this probe's name and type
    - ``bool`` — ``True`` is ``UP``, ``False`` is ``DOWN``

    Anything else, or a raised exception, produces a ``DOWN`` result.

    Parameters
    ----------
    component_name:
        Unique name of the component.
    component_type:
        Category of the component.
    fn:
        Zero-argument callable, sync or async.
    is_enabled:
        Whether the probe takes part in reports.
    degradation_threshold:
        Optional latency above which ``UP`` is reported as ``DEGRADED``.

    Raises
    ------
    InvalidProbeError
        If *fn* is not callable.

    Examples
    --------
    >>> probe = CallableProbe("cache", "redis", lambda: True)
    >>> probe.execute().status
    <HealthStatus.UP: 'UP'>
    """

    def __init__(
        self,
        component_name: str,
        component_type: str,
        fn: Callable[[], Any],
        is_enabled: bool = True,
        degradation_threshold: timedelta | None = None,
    ) -> None:
        if not callable(fn):
            raise InvalidProbeError(
                f"CallableProbe requires a callable; got {type(fn).__name__}.",
                context={"component_name": component_name},
            )
        super().__init__(
            component_name,
            component_type,
            degradation_threshold=degradation_threshold,
            is_enabled=is_enabled,
        )
        self._fn = fn
        self._is_async = inspect.iscoroutinefunction(fn)

    def do_check(self) -> ProbeResult:
        outcome = asyncio.run(self._fn()) if self._is_async else self._fn()
        return self._to_result(outcome)

    async def execute_async(self) -> ProbeResult:
        if not self._is_async:
            return await super().execute_async()
        start = self._clock()
        try:
            result = self._to_result(await self._fn())
        except Exception as exc:
            return self._failed(exc, start)
        return self._completed(result, start)

    def _to_result(self, outcome: object) -> ProbeResult:
        if isinstance(outcome, ProbeResult):
            return outcome
        if isinstance(outcome, bool):
            return self.up() if outcome else self.down("Check returned False")
        if isinstance(outcome, HealthStatus):
            return ProbeResult(
                component_name=self.component_name(),
                component_type=self.component_type(),
                status=outcome,
            )
        raise TypeError(
            f"Probe callable for {self.component_name()!r} returned unsupported "
            f"type {type(outcome).__name__}"
        )


__all__ = ["CallableProbe"]
