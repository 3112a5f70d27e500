"""enjambre: multi-backend generation swarm with adaptive strategy selection."""

from __future__ import annotations

from enjambre.config import AdapterConfig, SwarmConfig
from enjambre.swarm.orchestrator import SwarmOrchestrator
from enjambre.swarm.tasks import TaskBuilder
from enjambre.swarm.types import Task, TaskKind, TaskResult, TaskStatus

__version__ = "0.3.0"

__all__ = [
    "AdapterConfig",
    "SwarmConfig",
    "SwarmOrchestrator",
    "Task",
    "TaskBuilder",
    "TaskKind",
    "TaskResult",
    "TaskStatus",
    "__version__",
]
