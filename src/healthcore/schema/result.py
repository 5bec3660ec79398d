"""Probe result schema for healthcore-sdk.

This module is part of the *public* schema surface.  ``ProbeResult`` is the
only data the core hands back to reporting and HTTP layers, and its
``to_dict()`` form is the only format contract the core guarantees.

Shipped in this module
----------------------
- HealthStatus        — UP / DEGRADED / DOWN / UNKNOWN with severity ordering
- ProbeResult         — immutable outcome of one probe execution
- ProbeResultBuilder  — fluent builder for ``ProbeResult``
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from healthcore.schema.errors import ProbeFaultError, ProbeTimeoutError

# Metadata keys shared by every synthetic result the core produces.
ERROR_TYPE_KEY = "errorType"
TIMEOUT_ERROR_TYPE = "TimeoutException"
UNEXPECTED_ERROR_TYPE = "UnexpectedException"


class HealthStatus(str, Enum):
    """Health status of a single component.

    Severity decreases UP > DEGRADED > DOWN >= UNKNOWN; aggregate rollups
    pick the lowest-severity status via :meth:`worst`.
    """

    UP = "UP"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"
    UNKNOWN = "UNKNOWN"

    @property
    def code(self) -> str:
        """Return the wire code for this status."""
        return self.value

    @property
    def severity(self) -> int:
        """Return the numeric severity; higher is healthier."""
        return _SEVERITY[self]

    @property
    def is_healthy(self) -> bool:
        return self is HealthStatus.UP

    @property
    def is_degraded(self) -> bool:
        return self is HealthStatus.DEGRADED

    @property
    def is_unhealthy(self) -> bool:
        return self in (HealthStatus.DOWN, HealthStatus.UNKNOWN)

    def is_worse_or_equal_to(self, other: HealthStatus) -> bool:
        return self.severity <= other.severity

    def is_better_than(self, other: HealthStatus) -> bool:
        return self.severity > other.severity

    @classmethod
    def from_code(cls, code: str) -> HealthStatus:
        """Parse a status code case-insensitively.

        Raises
        ------
        ValueError
            If *code* is not a known status code.
        """
        normalised = str(code).strip().upper()
        for status in cls:
            if status.value == normalised:
                return status
        raise ValueError(f"Unknown health status code: {code!r}")

    @classmethod
    def worst(cls, *statuses: HealthStatus) -> HealthStatus:
        """Return the lowest-severity status among *statuses*.

        ``UP`` is returned when no statuses are given.  On equal severity
        the later argument wins, so ``worst(DOWN, UNKNOWN)`` is ``UNKNOWN``.

        Examples
        --------
        >>> HealthStatus.worst(HealthStatus.UP, HealthStatus.DEGRADED)
        <HealthStatus.DEGRADED: 'DEGRADED'>
        """
        result = cls.UP
        for status in statuses:
            if status.is_worse_or_equal_to(result):
                result = status
        return result

    def __str__(self) -> str:
        return self.value


_SEVERITY: dict[HealthStatus, int] = {
    HealthStatus.UP: 100,
    HealthStatus.DEGRADED: 50,
    HealthStatus.DOWN: 0,
    HealthStatus.UNKNOWN: -1,
}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class ProbeResult:
    """Immutable outcome of a single probe execution.

    Parameters
    ----------
    component_name:
        Unique, non-empty name of the checked component.
    status:
        Observed :class:`HealthStatus`.  A status code string is accepted
        and parsed.
    component_type:
        Free-form category, e.g. ``"database"`` or ``"broker"``.
    timestamp:
        UTC time the result was produced.
    latency:
        Non-negative time the probe took.
    error_message:
        Optional human-readable failure description.
    metadata:
        Ordered key/value details.  Copied on construction and exposed
        read-only.

    Examples
    --------
    >>> result = ProbeResult.up("db", "database", latency=timedelta(milliseconds=5))
    >>> result.to_dict()["status"]
    'UP'
    >>> result.latency_ms
    5
    """

    component_name: str
    status: HealthStatus
    component_type: str = "unknown"
    timestamp: datetime = field(default_factory=_utcnow)
    latency: timedelta = field(default=timedelta(0))
    error_message: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        if not isinstance(self.component_name, str) or not self.component_name.strip():
            raise ValueError("component_name must be a non-empty string")
        if not isinstance(self.status, HealthStatus):
            object.__setattr__(self, "status", HealthStatus.from_code(self.status))
        if not isinstance(self.latency, timedelta):
            raise ValueError("latency must be a datetime.timedelta")
        if self.latency < timedelta(0):
            raise ValueError("latency must be non-negative")
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def builder(cls, component_name: str) -> ProbeResultBuilder:
        """Return a fluent builder for a result named *component_name*."""
        return ProbeResultBuilder(component_name)

    @classmethod
    def up(
        cls,
        component_name: str,
        component_type: str = "unknown",
        latency: timedelta = timedelta(0),
        **metadata: Any,
    ) -> ProbeResult:
        return cls(
            component_name=component_name,
            component_type=component_type,
            status=HealthStatus.UP,
            latency=latency,
            metadata=metadata,
        )

    @classmethod
    def degraded(
        cls,
        component_name: str,
        component_type: str = "unknown",
        reason: str | None = None,
        latency: timedelta = timedelta(0),
        **metadata: Any,
    ) -> ProbeResult:
        return cls(
            component_name=component_name,
            component_type=component_type,
            status=HealthStatus.DEGRADED,
            latency=latency,
            error_message=reason,
            metadata=metadata,
        )

    @classmethod
    def down(
        cls,
        component_name: str,
        component_type: str = "unknown",
        error: str | None = None,
        latency: timedelta = timedelta(0),
        **metadata: Any,
    ) -> ProbeResult:
        return cls(
            component_name=component_name,
            component_type=component_type,
            status=HealthStatus.DOWN,
            latency=latency,
            error_message=error,
            metadata=metadata,
        )

    @classmethod
    def from_exception(
        cls,
        component_name: str,
        component_type: str,
        exc: BaseException,
        latency: timedelta = timedelta(0),
        **metadata: Any,
    ) -> ProbeResult:
        """Build a synthetic DOWN result describing *exc*.

        Timeouts are tagged ``errorType=TimeoutException`` and
        ``timeout=True``; everything else is tagged
        ``errorType=UnexpectedException`` with the original exception class
        under ``exceptionClass``.
        """
        details: dict[str, Any] = {}
        if isinstance(exc, (ProbeTimeoutError, TimeoutError)):
            details[ERROR_TYPE_KEY] = TIMEOUT_ERROR_TYPE
            details["timeout"] = True
        else:
            details[ERROR_TYPE_KEY] = UNEXPECTED_ERROR_TYPE
            details["exceptionClass"] = (
                exc.cause_type if isinstance(exc, ProbeFaultError) else type(exc).__name__
            )
        details.update(metadata)
        return cls(
            component_name=component_name,
            component_type=component_type,
            status=HealthStatus.DOWN,
            latency=latency,
            error_message=str(exc) or type(exc).__name__,
            metadata=details,
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def latency_ms(self) -> int:
        """Return latency in whole milliseconds."""
        return int(self.latency / timedelta(milliseconds=1))

    @property
    def is_healthy(self) -> bool:
        return self.status.is_healthy

    @property
    def is_degraded(self) -> bool:
        return self.status.is_degraded

    @property
    def is_unhealthy(self) -> bool:
        return self.status.is_unhealthy

    def with_metadata(self, **items: Any) -> ProbeResult:
        """Return a copy of this result with *items* merged into metadata."""
        merged = dict(self.metadata)
        merged.update(items)
        return replace(self, metadata=merged)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Serialise to a flat, JSON-friendly dict.

        Returns
        -------
        dict[str, object]
            ``status`` is the status code string, ``latencyMs`` an integer,
            ``timestamp`` ISO-8601.  ``errorMessage`` is present only when
            set.
        """
        data: dict[str, object] = {
            "componentName": self.component_name,
            "componentType": self.component_type,
            "status": self.status.code,
            "timestamp": self.timestamp.isoformat(),
            "latencyMs": self.latency_ms,
        }
        if self.error_message is not None:
            data["errorMessage"] = self.error_message
        data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProbeResult:
        """Rebuild a result from the output of :meth:`to_dict`."""
        timestamp = data.get("timestamp")
        return cls(
            component_name=str(data["componentName"]),
            component_type=str(data.get("componentType", "unknown")),
            status=HealthStatus.from_code(str(data["status"])),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else _utcnow(),
            latency=timedelta(milliseconds=int(data.get("latencyMs", 0))),
            error_message=data.get("errorMessage"),
            metadata=dict(data.get("metadata") or {}),
        )

    def __str__(self) -> str:
        return (
            f"ProbeResult(name={self.component_name!r}, status={self.status.code}, "
            f"latency={self.latency_ms}ms)"
        )


class ProbeResultBuilder:
    """Fluent builder for :class:`ProbeResult`.

    Examples
    --------
    >>> result = (
    ...     ProbeResult.builder("cache")
    ...     .component_type("redis")
    ...     .status(HealthStatus.DEGRADED)
    ...     .add_metadata("hitRate", 0.42)
    ...     .build()
    ... )
    >>> result.metadata["hitRate"]
    0.42
    """

    def __init__(self, component_name: str) -> None:
        self._component_name = component_name
        self._component_type = "unknown"
        self._status = HealthStatus.UP
        self._timestamp: datetime | None = None
        self._latency = timedelta(0)
        self._error_message: str | None = None
        self._metadata: dict[str, Any] = {}

    def component_type(self, component_type: str) -> ProbeResultBuilder:
        self._component_type = component_type
        return self

    def status(self, status: HealthStatus) -> ProbeResultBuilder:
        self._status = status
        return self

    def timestamp(self, timestamp: datetime) -> ProbeResultBuilder:
        self._timestamp = timestamp
        return self

    def latency(self, latency: timedelta) -> ProbeResultBuilder:
        self._latency = latency
        return self

    def error_message(self, error_message: str | None) -> ProbeResultBuilder:
        self._error_message = error_message
        return self

    def metadata(self, metadata: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> ProbeResultBuilder:
        self._metadata = dict(metadata)
        return self

    def add_metadata(self, key: str, value: Any) -> ProbeResultBuilder:
        self._metadata[key] = value
        return self

    def build(self) -> ProbeResult:
        return ProbeResult(
            component_name=self._component_name,
            component_type=self._component_type,
            status=self._status,
            timestamp=self._timestamp if self._timestamp is not None else _utcnow(),
            latency=self._latency,
            error_message=self._error_message,
            metadata=self._metadata,
        )


__all__ = [
    "ERROR_TYPE_KEY",
    "TIMEOUT_ERROR_TYPE",
    "UNEXPECTED_ERROR_TYPE",
    "HealthStatus",
    "ProbeResult",
    "ProbeResultBuilder",
]
