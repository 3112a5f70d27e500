"""Execution engine: the per-task generate -> verify -> refine state machine."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace

from enjambre.adapters.base import BackendAdapter, GenerationRequest
from enjambre.errors import GenerationError, GenerationTimeout
from enjambre.performance import PerformanceMonitor
from enjambre.swarm.complexity import analyze_complexity, profile_for
from enjambre.swarm.strategies import StrategySpec
from enjambre.swarm.types import (
    Artifact,
    AttemptResult,
    FailureKind,
    FailureReason,
    Task,
    TaskStatus,
)
from enjambre.swarm.verification import VerificationPipeline

logger = logging.getLogger(__name__)

MAX_FEEDBACK_ITEMS = 3
PREVIOUS_OUTPUT_CHARS = 1_500


@dataclass
class ExecutionOutcome:
    """Terminal state reached by :meth:`ExecutionEngine.execute`."""

    status: TaskStatus
    artifact: Artifact | None
    quality: float
    error: str | None = None


class ExecutionEngine:
    """Drive one task from Designing to a terminal state.

    Attempts run strictly one after another. Generation errors and
    timeouts are absorbed here and turned into retry or failure
    decisions; they never reach the caller. Every generate/verify cycle
    appends exactly one :class:`AttemptResult` to ``task.history``.
    """

    def __init__(
        self,
        verifier: VerificationPipeline | None = None,
        *,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self.verifier = verifier or VerificationPipeline()
        self.monitor = monitor

    def design(self, task: Task, strategy: StrategySpec) -> GenerationRequest:
        """Build the backend request from the task and its strategy."""
        complexity = analyze_complexity(task.description)
        profile = profile_for(complexity, task.priority)

        system_prompt = (
            f"You are a specialist generation agent using the {strategy.tag} strategy: "
            f"{strategy.description}.\n{strategy.prompt_guidance()}"
        )
        lines = [f"## TASK ({task.kind})", task.description.strip()]
        if task.preferred_language:
            lines += ["", f"Preferred language: {task.preferred_language}"]
        prompt = "\n".join(lines)

        return GenerationRequest(
            task_id=task.id,
            prompt=prompt,
            kind=task.kind,
            system_prompt=system_prompt,
            strategy=strategy.tag,
            profile=profile,
            language=task.preferred_language,
            metadata={
                "base_prompt": prompt,
                "complexity": str(complexity),
                "strategy_parameters": dict(strategy.parameters),
                "feedback": [],
            },
        )

    async def execute(
        self,
        task: Task,
        adapter: BackendAdapter,
        request: GenerationRequest,
        *,
        threshold: float,
    ) -> ExecutionOutcome:
        max_attempts = adapter.config.max_attempts
        structural_checks = adapter.config.enable_verification and adapter.supports_verification
        last_quality = 0.0

        while True:
            task.transition_to(TaskStatus.EXECUTING)
            task.attempts += 1
            request = replace(request, attempt=task.attempts)
            started_at = time.time()
            t0 = time.monotonic()

            try:
                artifact = await adapter.generate(request, timeout=adapter.config.timeout_seconds)
            except GenerationTimeout as e:
                artifact, failure = None, FailureReason(FailureKind.TIMEOUT, str(e))
            except GenerationError as e:
                artifact, failure = None, FailureReason(FailureKind.GENERATION_ERROR, str(e))
            except asyncio.CancelledError:
                task.history.append(
                    AttemptResult(
                        attempt=task.attempts,
                        artifact=None,
                        quality=0.0,
                        accepted=False,
                        reason=FailureReason(FailureKind.CANCELLED, "cancelled by caller"),
                        started_at=started_at,
                        duration_seconds=time.monotonic() - t0,
                        status=TaskStatus.CANCELLED,
                    )
                )
                task.transition_to(TaskStatus.CANCELLED)
                raise
            else:
                failure = None
            if self.monitor is not None:
                self.monitor.record_request(time.monotonic() - t0, failure is None)

            retry = task.attempts < max_attempts
            if artifact is None:
                next_status = TaskStatus.REFINING if retry else TaskStatus.FAILED
                task.history.append(
                    AttemptResult(
                        attempt=task.attempts,
                        artifact=None,
                        quality=0.0,
                        accepted=False,
                        reason=failure,
                        started_at=started_at,
                        duration_seconds=time.monotonic() - t0,
                        status=next_status,
                    )
                )
                logger.warning(
                    "Task %s attempt %d/%d failed: %s",
                    task.id,
                    task.attempts,
                    max_attempts,
                    failure,
                )
                task.transition_to(next_status)
                if retry:
                    request = refine_request(request, failure)
                    continue
                return ExecutionOutcome(TaskStatus.FAILED, None, last_quality, str(failure))

            task.transition_to(TaskStatus.VERIFYING)
            verdict = self.verifier.verify(
                task, artifact, threshold, structural_checks=structural_checks
            )
            if verdict.accepted:
                next_status = TaskStatus.SUCCEEDED
            else:
                next_status = TaskStatus.REFINING if retry else TaskStatus.FAILED
            task.history.append(
                AttemptResult(
                    attempt=task.attempts,
                    artifact=artifact,
                    quality=verdict.quality,
                    accepted=verdict.accepted,
                    reason=verdict.reason,
                    started_at=started_at,
                    duration_seconds=time.monotonic() - t0,
                    status=next_status,
                )
            )
            last_quality = verdict.quality
            task.transition_to(next_status)

            if verdict.accepted:
                logger.info(
                    "Task %s accepted on attempt %d (quality=%.2f)",
                    task.id,
                    task.attempts,
                    verdict.quality,
                )
                return ExecutionOutcome(TaskStatus.SUCCEEDED, artifact, verdict.quality)

            error = str(verdict.reason) if verdict.reason else "rejected"
            logger.info(
                "Task %s attempt %d/%d rejected: %s", task.id, task.attempts, max_attempts, error
            )
            if retry:
                request = refine_request(request, verdict.reason, artifact)
                continue
            return ExecutionOutcome(TaskStatus.FAILED, artifact, last_quality, error)


def refine_request(
    request: GenerationRequest,
    reason: FailureReason | None,
    previous: Artifact | None = None,
) -> GenerationRequest:
    """Fold the rejection reason into the next request as corrective guidance."""
    feedback = list(request.metadata.get("feedback", []))
    if reason is not None:
        feedback.append(f"Attempt {request.attempt}: {reason}")
    feedback = feedback[-MAX_FEEDBACK_ITEMS:]

    base_prompt = request.metadata.get("base_prompt", request.prompt)
    parts = [base_prompt, "", "## PREVIOUS ATTEMPTS WERE NOT ACCEPTED"]
    parts += [f"- {item}" for item in feedback]
    if previous is not None and previous.content.strip():
        parts += [
            "",
            "## YOUR LAST OUTPUT (for reference)",
            previous.content[:PREVIOUS_OUTPUT_CHARS],
        ]
    parts += [
        "",
        "Address every issue listed above. Do NOT repeat the same answer; "
        "change your approach where it failed.",
    ]

    metadata = dict(request.metadata)
    metadata["feedback"] = feedback
    return replace(request, prompt="\n".join(parts), metadata=metadata)
