"""Probe package for healthcore-sdk.

Exports the probe capability, the template base class, the callable
adapter and the cooperative cancellation helpers.
"""
from __future__ import annotations

from healthcore.probes.base import AbstractProbe, Probe
from healthcore.probes.callable import CallableProbe
from healthcore.probes.cancellation import (
    CancellationToken,
    bind_cancellation_token,
    current_cancellation_token,
)

__all__ = [
    "Probe",
    "AbstractProbe",
    "CallableProbe",
    "CancellationToken",
    "bind_cancellation_token",
    "current_cancellation_token",
]
