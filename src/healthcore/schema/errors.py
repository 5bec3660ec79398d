"""Error taxonomy for healthcore-sdk.

All exceptions raised by healthcore derive from ``HealthCoreError`` so that
the wiring layer can catch the entire family with a single
``except HealthCoreError`` clause while still being able to distinguish
individual failure modes.

Only wiring-time misuse (bad probes, bad configuration) is ever raised to
callers.  ``ProbeExecutionError`` and its subclasses are internal: they flow
between the worker-pool invoker, the circuit breaker and the result cache,
and are converted into ``ProbeResult`` values before a report is returned.

Shipped in this module
----------------------
- ErrorSeverity           — ordered severity enum
- HealthCoreError         — root exception with severity and context payload
- ConfigurationError      — invalid or unreadable configuration
- InvalidProbeError       — probe rejected at registration
- RegistryError           — registry structural violations
- ProbeExecutionError     — internal base for probe faults and timeouts
- ProbeTimeoutError       — probe did not return within its deadline
- ProbeFaultError         — probe raised instead of returning a result
- OrchestratorClosedError — orchestrator used after ``close()``
"""
from __future__ import annotations

from enum import Enum


class ErrorSeverity(str, Enum):
    """Ordered severity levels for ``HealthCoreError`` instances.

    Severity is advisory metadata for logging and alerting; it does not
    change exception-handling semantics.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class HealthCoreError(Exception):
    """Root exception for all healthcore failures.

    Parameters
    ----------
    message:
        Human-readable description of what went wrong.
    severity:
        Advisory ``ErrorSeverity`` level.  Defaults to ``HIGH``.
    context:
        Optional dict of structured metadata (component names, config keys,
        etc.) that helps diagnostics without requiring log scraping.

    Examples
    --------
    >>> try:
    ...     raise HealthCoreError("something broke", ErrorSeverity.MEDIUM)
    ... except HealthCoreError as exc:
    ...     print(exc.severity)
    ErrorSeverity.MEDIUM
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        context: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.severity: ErrorSeverity = severity
        self.context: dict[str, object] = context or {}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"message={str(self)!r}, "
            f"severity={self.severity.value!r})"
        )


class ConfigurationError(HealthCoreError):
    """Raised when configuration loading or validation fails.

    Examples: negative TTL, per-call timeout above the global timeout,
    malformed YAML.
    """


class InvalidProbeError(HealthCoreError):
    """Raised when a probe is rejected at registration time.

    Examples: ``None`` probe, object without the probe capability, empty
    component name.
    """


class RegistryError(HealthCoreError):
    """Raised for registry structural violations detected during validation."""


class ProbeExecutionError(HealthCoreError):
    """Base class for failures while invoking a probe.

    Parameters
    ----------
    component_name:
        Name of the component whose probe failed.
    component_type:
        Category of that component.
    message:
        Human-readable description.
    """

    def __init__(
        self,
        component_name: str,
        component_type: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ) -> None:
        super().__init__(
            message,
            severity,
            context={"component_name": component_name, "component_type": component_type},
        )
        self.component_name = component_name
        self.component_type = component_type


class ProbeTimeoutError(ProbeExecutionError):
    """Raised when a probe does not return within its per-call timeout."""

    def __init__(self, component_name: str, component_type: str, timeout_seconds: float) -> None:
        super().__init__(
            component_name,
            component_type,
            f"Probe {component_name!r} timed out after {timeout_seconds:g}s",
        )
        self.timeout_seconds = timeout_seconds


class ProbeFaultError(ProbeExecutionError):
    """Raised when a probe raises instead of returning a result.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, component_name: str, component_type: str, cause: BaseException) -> None:
        super().__init__(
            component_name,
            component_type,
            f"Probe {component_name!r} raised {type(cause).__name__}: {cause}",
        )
        self.cause_type = type(cause).__name__


class OrchestratorClosedError(HealthCoreError):
    """Raised when a closed orchestrator is asked to run probes."""
