"""Task complexity heuristic used to pick a model profile in the Design phase."""

from __future__ import annotations

from enum import StrEnum

from enjambre.swarm.types import TaskPriority


class TaskComplexity(StrEnum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"
    CRITICAL = "critical"


_KEYWORDS: tuple[tuple[TaskComplexity, tuple[str, ...]], ...] = (
    (TaskComplexity.SIMPLE, ("simple", "básico", "basico", "basic", "trivial")),
    (TaskComplexity.COMPLEX, ("complejo", "complex", "avanzado", "advanced", "alta precisión")),
    (TaskComplexity.CRITICAL, ("crítico", "critico", "critical", "urgente", "urgent")),
)


def analyze_complexity(description: str) -> TaskComplexity:
    """Classify a description by keyword; first matching bucket wins."""
    text = description.lower()
    for complexity, keywords in _KEYWORDS:
        if any(k in text for k in keywords):
            return complexity
    return TaskComplexity.MEDIUM


def profile_for(complexity: TaskComplexity, priority: TaskPriority) -> str:
    """Map complexity x priority onto a model profile (fast | quality)."""
    if complexity is TaskComplexity.SIMPLE:
        return "fast"
    if complexity is TaskComplexity.MEDIUM:
        return "fast" if priority in (TaskPriority.LOW, TaskPriority.MEDIUM) else "quality"
    return "quality"
