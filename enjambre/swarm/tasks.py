"""Ready-made task constructors for the common task kinds."""

from __future__ import annotations

from enjambre.swarm.types import Task, TaskKind, TaskPriority


class TaskBuilder:
    """Factory helpers that fill in kind and priority per task kind.

    ``quality_threshold`` and ``max_execution_seconds`` stay unset unless
    passed, so the swarm threshold and the caller's deadline apply.
    """

    @staticmethod
    def code_generation(
        description: str,
        language: str = "python",
        *,
        quality_threshold: float | None = None,
        max_execution_seconds: float | None = None,
    ) -> Task:
        return Task(
            description=description,
            kind=TaskKind.CODE_GENERATION,
            priority=TaskPriority.MEDIUM,
            quality_threshold=quality_threshold,
            preferred_language=language,
            max_execution_seconds=max_execution_seconds,
        )

    @staticmethod
    def forecasting(
        description: str,
        *,
        quality_threshold: float | None = None,
        max_execution_seconds: float | None = None,
    ) -> Task:
        return Task(
            description=description,
            kind=TaskKind.FORECASTING,
            priority=TaskPriority.HIGH,
            quality_threshold=quality_threshold,
            max_execution_seconds=max_execution_seconds,
        )

    @staticmethod
    def classification(description: str) -> Task:
        return Task(description=description, kind=TaskKind.CLASSIFICATION)

    @staticmethod
    def general(description: str, priority: TaskPriority = TaskPriority.MEDIUM) -> Task:
        return Task(description=description, kind=TaskKind.GENERAL, priority=priority)

    @classmethod
    def for_kind(cls, kind: TaskKind | str, description: str) -> Task:
        """Build a task of ``kind`` (enum or its string value)."""
        kind = TaskKind(kind)
        if kind is TaskKind.CODE_GENERATION:
            return cls.code_generation(description)
        if kind is TaskKind.FORECASTING:
            return cls.forecasting(description)
        if kind is TaskKind.CLASSIFICATION:
            return cls.classification(description)
        return Task(description=description, kind=kind)
