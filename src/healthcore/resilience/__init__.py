"""Resilience package for healthcore-sdk."""
from __future__ import annotations

from healthcore.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerManager,
    CircuitBreakerState,
    CircuitState,
    TransitionCallback,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerManager",
    "CircuitBreakerState",
    "CircuitState",
    "TransitionCallback",
]
