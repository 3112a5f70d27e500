"""Swarm core: task model, strategy catalog and the SAFLA execution loop."""

from __future__ import annotations

from enjambre.swarm.strategies import DEFAULT_CATALOG, StrategySpec
from enjambre.swarm.types import (
    Artifact,
    AttemptResult,
    Stats,
    StrategyTag,
    Task,
    TaskKind,
    TaskPriority,
    TaskResult,
    TaskStatus,
)

__all__ = [
    "DEFAULT_CATALOG",
    "Artifact",
    "AttemptResult",
    "Stats",
    "StrategySpec",
    "StrategyTag",
    "Task",
    "TaskKind",
    "TaskPriority",
    "TaskResult",
    "TaskStatus",
]
