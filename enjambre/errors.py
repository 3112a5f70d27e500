"""Error taxonomy for the swarm orchestrator."""

from __future__ import annotations


class EnjambreError(Exception):
    """Base class for all enjambre errors."""


class ConfigurationError(EnjambreError):
    """Fatal setup problem: no adapters, empty strategy catalog, bad config.

    Raised at initialization time only. The process must not proceed.
    """


class GenerationError(EnjambreError):
    """A backend failed to produce an artifact for one attempt."""

    def __init__(self, message: str, *, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class GenerationTimeout(GenerationError):
    """A backend did not answer within the per-call timeout."""

    def __init__(self, timeout_seconds: float, *, backend: str = "") -> None:
        super().__init__(
            f"Backend did not respond within {timeout_seconds:g}s",
            backend=backend,
        )
        self.timeout_seconds = timeout_seconds


class InvalidTransition(EnjambreError):
    """A task was moved along an edge the lifecycle does not allow."""

    def __init__(self, task_id: str, current: str, target: str) -> None:
        super().__init__(f"Task {task_id}: illegal transition {current} -> {target}")
        self.task_id = task_id
        self.current = current
        self.target = target
