"""Swarm orchestrator: drives tasks through Analyze -> Design -> Execute -> Learn."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence

from enjambre.adapters.base import BackendAdapter
from enjambre.adapters.registry import build_registry
from enjambre.config import AdapterConfig, SwarmConfig
from enjambre.errors import ConfigurationError
from enjambre.performance import PerformanceMonitor, PerformanceReport
from enjambre.swarm.engine import ExecutionEngine, ExecutionOutcome
from enjambre.swarm.selector import Selection, StrategySelector
from enjambre.swarm.stats import StatsAggregator
from enjambre.swarm.strategies import DEFAULT_CATALOG, StrategySpec
from enjambre.swarm.types import Stats, Task, TaskResult, TaskStatus
from enjambre.swarm.verification import VerificationPipeline

logger = logging.getLogger(__name__)


class SwarmOrchestrator:
    """Top-level façade: adapter registry, concurrency budget, SAFLA loop.

    Usage:
        orchestrator = SwarmOrchestrator(SwarmConfig(max_concurrent_tasks=4))
        await orchestrator.initialize({"gemini": AdapterConfig(api_key_env="GEMINI_API_KEY")})
        result = await orchestrator.execute_task(
            Task(description="Write a CSV parser", kind=TaskKind.CODE_GENERATION)
        )
        print(orchestrator.get_stats().success_rate)
    """

    def __init__(
        self,
        config: SwarmConfig | None = None,
        *,
        catalog: Sequence[StrategySpec] = DEFAULT_CATALOG,
        verifier: VerificationPipeline | None = None,
    ) -> None:
        self.config = config or SwarmConfig()
        self.stats = StatsAggregator(
            (spec.tag for spec in catalog),
            learning_rate=self.config.learning_rate,
            min_weight=self.config.min_weight,
            max_weight=self.config.max_weight,
            adaptive=self.config.enable_adaptive_learning,
        )
        self.selector = StrategySelector(
            catalog,
            weight_of=self.stats.weight,
            fallback_affinity=self.config.fallback_affinity,
            enabled=self.config.enable_strategy_selection,
        )
        self.monitor = PerformanceMonitor() if self.config.performance_monitoring else None
        self.engine = ExecutionEngine(verifier, monitor=self.monitor)

        self._adapters: Mapping[str, BackendAdapter] | None = None
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_tasks)
        self._active_tasks: dict[str, Task] = {}

    @property
    def session_id(self) -> str:
        return self.stats.session_id

    @property
    def adapters(self) -> Mapping[str, BackendAdapter]:
        if self._adapters is None:
            raise ConfigurationError("Orchestrator is not initialized; call initialize() first")
        return self._adapters

    @property
    def initialized(self) -> bool:
        return self._adapters is not None

    async def initialize(self, adapter_configs: Mapping[str, AdapterConfig]) -> None:
        """Construct every adapter and freeze the registry. Call exactly once."""
        if self._adapters is not None:
            raise ConfigurationError("Orchestrator is already initialized")
        logger.info("Initializing swarm orchestrator: session %s", self.session_id)
        self._adapters = build_registry(adapter_configs)
        if self.config.default_adapter not in self._adapters:
            logger.warning(
                "Default adapter '%s' not configured; falling back to '%s'",
                self.config.default_adapter,
                next(iter(self._adapters)),
            )
        logger.info("Swarm initialized with %d adapter(s)", len(self._adapters))

    async def execute_task(self, task: Task, *, deadline: float | None = None) -> TaskResult:
        """Run ``task`` to a terminal state and report the outcome.

        Never raises for backend failures: exhausted attempts come back as
        ``TaskResult(success=False)``. ``deadline`` (seconds, defaulting to
        ``task.max_execution_seconds``) bounds the whole run including the
        wait for a concurrency slot; on expiry the task ends ``cancelled``.
        Cancellation from the caller also ends the task ``cancelled`` and is
        counted before the ``CancelledError`` propagates.
        """
        adapters = self.adapters
        if task.status is not TaskStatus.PENDING:
            raise ValueError(f"Task {task.id} was already submitted (status={task.status})")

        limit = deadline if deadline is not None else task.max_execution_seconds
        started = time.monotonic()
        logger.info("Executing task %s: %s", task.id, task.description[:80])

        outcome: ExecutionOutcome
        try:
            if limit is None:
                outcome = await self._admit_and_run(task, adapters)
            else:
                outcome = await asyncio.wait_for(self._admit_and_run(task, adapters), timeout=limit)
        except TimeoutError:
            if not task.is_terminal:
                task.transition_to(TaskStatus.CANCELLED)
            logger.warning("Task %s cancelled: deadline of %.1fs expired", task.id, limit)
            outcome = ExecutionOutcome(
                TaskStatus.CANCELLED, None, 0.0, f"deadline of {limit:g}s expired"
            )
        except asyncio.CancelledError:
            # Cancelled from outside (caller deadline or task.cancel())
            if not task.is_terminal:
                task.transition_to(TaskStatus.CANCELLED)
            self.stats.record_cancelled()
            logger.warning("Task %s cancelled by caller", task.id)
            raise
        finally:
            self._active_tasks.pop(task.id, None)

        self._learn(task, outcome)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        if outcome.status is TaskStatus.SUCCEEDED:
            logger.info("Task %s succeeded in %dms", task.id, elapsed_ms)
        elif outcome.status is TaskStatus.FAILED:
            logger.error(
                "Task %s failed after %d attempt(s): %s", task.id, task.attempts, outcome.error
            )

        return TaskResult(
            task_id=task.id,
            success=outcome.status is TaskStatus.SUCCEEDED,
            outcome=outcome.status,
            result=outcome.artifact if outcome.status is TaskStatus.SUCCEEDED else None,
            attempts=task.attempts,
            strategy_used=task.strategy,
            backend=task.backend,
            quality=outcome.quality,
            error=outcome.error,
            execution_time_ms=elapsed_ms,
            history=list(task.history),
        )

    async def execute_many(
        self, tasks: Sequence[Task], *, deadline: float | None = None
    ) -> list[TaskResult]:
        """Run tasks concurrently, bounded by ``max_concurrent_tasks``."""
        return list(
            await asyncio.gather(*(self.execute_task(t, deadline=deadline) for t in tasks))
        )

    async def _admit_and_run(
        self, task: Task, adapters: Mapping[str, BackendAdapter]
    ) -> ExecutionOutcome:
        async with self._semaphore:
            self._active_tasks[task.id] = task

            # Analyze
            task.transition_to(TaskStatus.ANALYZING)
            selection = self._analyze(task, adapters)
            task.strategy = selection.strategy.tag
            task.backend = selection.backend

            # Design
            task.transition_to(TaskStatus.DESIGNING)
            request = self.engine.design(task, selection.strategy)
            adapter = adapters[selection.backend]

            # Execute
            threshold = (
                task.quality_threshold
                if task.quality_threshold is not None
                else self.config.quality_threshold
            )
            return await self.engine.execute(task, adapter, request, threshold=threshold)

    def _analyze(self, task: Task, adapters: Mapping[str, BackendAdapter]) -> Selection:
        return self.selector.select(task, list(adapters), self.config.default_adapter)

    def _learn(self, task: Task, outcome: ExecutionOutcome) -> None:
        if outcome.status is TaskStatus.CANCELLED:
            self.stats.record_cancelled()
            return
        self.stats.record(
            task.strategy,
            success=outcome.status is TaskStatus.SUCCEEDED,
            quality=outcome.quality,
        )

    def get_stats(self) -> Stats:
        """Consistent snapshot of swarm telemetry."""
        return self.stats.snapshot(
            active_adapters=len(self._adapters) if self._adapters is not None else 0,
            active_tasks=len(self._active_tasks),
        )

    async def health_check(self) -> dict[str, bool]:
        """Run every adapter's health check concurrently."""
        adapters = self.adapters
        names = list(adapters)
        results = await asyncio.gather(
            *(adapters[name].health_check() for name in names), return_exceptions=True
        )
        health: dict[str, bool] = {}
        for name, result in zip(names, results, strict=True):
            if isinstance(result, Exception):
                logger.error("Health check for %s raised: %s", name, result)
                health[name] = False
            else:
                health[name] = bool(result)
        return health

    def performance_report(self) -> PerformanceReport | None:
        return self.monitor.report() if self.monitor is not None else None
