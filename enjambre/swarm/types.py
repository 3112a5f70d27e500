"""Shared types for the swarm module."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from enjambre.errors import InvalidTransition


class TaskKind(StrEnum):
    CODE_GENERATION = "code-generation"
    FORECASTING = "forecasting"
    CLASSIFICATION = "classification"
    GENERAL = "general"
    # Accepted on input, folded onto the four kinds above for matching
    DATA_ANALYSIS = "data-analysis"
    TEXT_PROCESSING = "text-processing"
    REGRESSION = "regression"

    @property
    def base_kind(self) -> TaskKind:
        """The core kind this one is verified and matched as."""
        return _BASE_KINDS.get(self, self)


_BASE_KINDS: dict[TaskKind, TaskKind] = {
    TaskKind.DATA_ANALYSIS: TaskKind.FORECASTING,
    TaskKind.REGRESSION: TaskKind.FORECASTING,
    TaskKind.TEXT_PROCESSING: TaskKind.GENERAL,
}


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(StrEnum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    DESIGNING = "designing"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    REFINING = "refining"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED})

# Lifecycle edges. Nothing ever points back at pending, analyzing or designing.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.ANALYZING, TaskStatus.CANCELLED}),
    TaskStatus.ANALYZING: frozenset({TaskStatus.DESIGNING, TaskStatus.CANCELLED}),
    TaskStatus.DESIGNING: frozenset({TaskStatus.EXECUTING, TaskStatus.CANCELLED}),
    TaskStatus.EXECUTING: frozenset(
        {TaskStatus.VERIFYING, TaskStatus.REFINING, TaskStatus.FAILED, TaskStatus.CANCELLED}
    ),
    TaskStatus.VERIFYING: frozenset(
        {TaskStatus.SUCCEEDED, TaskStatus.REFINING, TaskStatus.FAILED, TaskStatus.CANCELLED}
    ),
    TaskStatus.REFINING: frozenset(
        {TaskStatus.EXECUTING, TaskStatus.FAILED, TaskStatus.CANCELLED}
    ),
    TaskStatus.SUCCEEDED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


class StrategyTag(StrEnum):
    SEQUENCE_MODEL = "sequence-model"
    FORECASTING_MODEL = "forecasting-model"
    LANGUAGE_MODEL = "language-model"
    GENERAL_MODEL = "general-model"


class FailureKind(StrEnum):
    GENERATION_ERROR = "generation_error"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass
class FailureReason:
    """Why an attempt did not produce an accepted artifact."""

    kind: FailureKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


@dataclass
class Artifact:
    """A candidate produced by a backend."""

    content: str
    confidence: float | None = None  # backend self-reported, in [0, 1]
    model: str | None = None
    language: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AttemptResult:
    """One generate + verify cycle."""

    attempt: int
    artifact: Artifact | None
    quality: float
    accepted: bool
    reason: FailureReason | None = None
    started_at: float = 0.0
    duration_seconds: float = 0.0
    status: TaskStatus | None = None  # where the task went after this attempt


@dataclass
class Task:
    """A unit of generation work plus its mutable lifecycle state."""

    description: str
    kind: TaskKind = TaskKind.GENERAL
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    priority: TaskPriority = TaskPriority.MEDIUM
    quality_threshold: float | None = None  # overrides SwarmConfig when set
    preferred_language: str | None = None
    max_execution_seconds: float | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    history: list[AttemptResult] = field(default_factory=list)
    transitions: list[TaskStatus] = field(default_factory=lambda: [TaskStatus.PENDING])
    strategy: StrategyTag | None = None
    backend: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition_to(self, target: TaskStatus) -> None:
        """Move to ``target``, refusing edges the lifecycle does not allow."""
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status, target)
        self.status = target
        self.transitions.append(target)


@dataclass
class TaskResult:
    """Uniform outcome of ``SwarmOrchestrator.execute_task``."""

    task_id: str
    success: bool
    outcome: TaskStatus  # succeeded | failed | cancelled
    result: Artifact | None
    attempts: int
    strategy_used: StrategyTag | None
    backend: str
    quality: float = 0.0
    error: str | None = None
    execution_time_ms: int = 0
    history: list[AttemptResult] = field(default_factory=list)


@dataclass
class Stats:
    """Point-in-time snapshot of swarm telemetry."""

    session_id: str
    total_tasks: int
    successful_tasks: int
    failed_tasks: int
    cancelled_tasks: int
    success_rate: float
    average_quality: float
    strategy_successes: dict[str, int] = field(default_factory=dict)
    strategy_totals: dict[str, int] = field(default_factory=dict)
    learned_weights: dict[str, float] = field(default_factory=dict)
    active_adapters: int = 0
    active_tasks: int = 0
