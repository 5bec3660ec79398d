"""Orchestrator package for healthcore-sdk."""
from __future__ import annotations

from healthcore.orchestrator.deadline import Deadline
from healthcore.orchestrator.orchestrator import HealthOrchestrator, OrchestratorStatistics

__all__ = ["Deadline", "HealthOrchestrator", "OrchestratorStatistics"]
