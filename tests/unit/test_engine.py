"""Tests for the execution engine: generate/verify/refine state machine."""

from __future__ import annotations

import asyncio

import pytest

from enjambre.config import AdapterConfig
from enjambre.errors import GenerationError, InvalidTransition
from enjambre.performance import PerformanceMonitor
from enjambre.swarm.engine import ExecutionEngine, refine_request
from enjambre.swarm.strategies import DEFAULT_CATALOG, get_strategy
from enjambre.swarm.types import (
    Artifact,
    FailureKind,
    FailureReason,
    StrategyTag,
    Task,
    TaskKind,
    TaskPriority,
    TaskStatus,
)
from enjambre.swarm.verification import VerificationPipeline

GENERAL = get_strategy(StrategyTag.GENERAL_MODEL)
S = TaskStatus


def _confidence_only() -> ExecutionEngine:
    """Engine whose quality equals the backend confidence."""
    return ExecutionEngine(VerificationPipeline(structural_weight=0.0))


# ── Design phase ─────────────────────────────────────────────


def test_design_builds_prompt_from_task_and_strategy(designed_task):
    task = designed_task("Predecir ventas del próximo trimestre", TaskKind.FORECASTING)
    task.priority = TaskPriority.HIGH
    spec = get_strategy(StrategyTag.FORECASTING_MODEL)

    request = ExecutionEngine().design(task, spec)

    assert request.task_id == task.id
    assert request.prompt.startswith("## TASK (forecasting)")
    assert "Predecir ventas" in request.prompt
    assert "forecasting-model" in request.system_prompt
    assert "numeric predictions" in request.system_prompt
    assert request.strategy is StrategyTag.FORECASTING_MODEL
    assert request.profile == "quality"
    assert request.metadata["complexity"] == "medium"
    assert request.metadata["base_prompt"] == request.prompt
    assert request.metadata["strategy_parameters"]["forecast_length"] == 24


def test_design_uses_fast_profile_for_simple_tasks(designed_task):
    task = designed_task("A simple hello world")
    assert ExecutionEngine().design(task, GENERAL).profile == "fast"


def test_design_includes_preferred_language(designed_task):
    task = designed_task("Sort a list", TaskKind.CODE_GENERATION)
    task.preferred_language = "rust"
    request = ExecutionEngine().design(task, DEFAULT_CATALOG[2])
    assert "Preferred language: rust" in request.prompt
    assert request.language == "rust"


# ── Happy path ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_first_attempt_accepted(designed_task, scripted):
    task = designed_task()
    engine = _confidence_only()
    request = engine.design(task, GENERAL)

    outcome = await engine.execute(task, scripted, request, threshold=0.8)

    assert outcome.status is S.SUCCEEDED
    assert outcome.quality == 1.0
    assert outcome.artifact is not None and outcome.artifact.content == "42"
    assert task.attempts == 1
    assert task.transitions == [
        S.PENDING, S.ANALYZING, S.DESIGNING, S.EXECUTING, S.VERIFYING, S.SUCCEEDED,
    ]
    assert len(task.history) == 1
    assert task.history[0].accepted
    assert task.history[0].status is S.SUCCEEDED


@pytest.mark.asyncio
async def test_two_rejections_then_acceptance(designed_task, scripted):
    """Confidences 0.5, 0.5, 0.9 against threshold 0.8 succeed on attempt 3."""
    scripted.script = [
        Artifact(content="first", confidence=0.5),
        Artifact(content="second", confidence=0.5),
        Artifact(content="third", confidence=0.9),
    ]
    task = designed_task()
    engine = _confidence_only()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert outcome.status is S.SUCCEEDED
    assert outcome.quality == pytest.approx(0.9)
    assert task.attempts == 3
    assert [h.quality for h in task.history] == pytest.approx([0.5, 0.5, 0.9])
    assert [h.accepted for h in task.history] == [False, False, True]
    assert [h.status for h in task.history] == [S.REFINING, S.REFINING, S.SUCCEEDED]
    assert task.history[0].reason is not None
    assert task.history[0].reason.kind is FailureKind.REJECTED


@pytest.mark.asyncio
async def test_rejection_feedback_reaches_next_request(designed_task, scripted):
    scripted.script = [
        Artifact(content="first", confidence=0.5),
        Artifact(content="second", confidence=0.5),
        Artifact(content="third", confidence=0.9),
    ]
    task = designed_task()
    engine = _confidence_only()

    await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    first, second, third = scripted.requests
    assert "PREVIOUS ATTEMPTS" not in first.prompt
    assert "PREVIOUS ATTEMPTS WERE NOT ACCEPTED" in second.prompt
    assert "Attempt 1: rejected: quality 0.50 below threshold 0.80" in second.prompt
    assert "first" in second.prompt
    assert "Attempt 2: rejected" in third.prompt
    assert third.prompt.count("## TASK") == 1
    assert [r.attempt for r in scripted.requests] == [1, 2, 3]


# ── Failure paths ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_always_failing_backend_fails_after_max_attempts(designed_task, scripted):
    scripted.script = [GenerationError("backend exploded")]
    task = designed_task()
    engine = ExecutionEngine()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert outcome.status is S.FAILED
    assert outcome.artifact is None
    assert "backend exploded" in (outcome.error or "")
    assert task.attempts == 3
    assert len(scripted.requests) == 3
    assert [h.reason.kind for h in task.history] == [FailureKind.GENERATION_ERROR] * 3
    assert task.transitions == [
        S.PENDING, S.ANALYZING, S.DESIGNING,
        S.EXECUTING, S.REFINING,
        S.EXECUTING, S.REFINING,
        S.EXECUTING, S.FAILED,
    ]


@pytest.mark.asyncio
async def test_rejections_exhaust_attempts(designed_task, scripted):
    scripted.script = [Artifact(content="meh", confidence=0.1)]
    task = designed_task()
    engine = _confidence_only()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert outcome.status is S.FAILED
    assert outcome.artifact is not None
    assert outcome.quality == pytest.approx(0.1)
    assert task.attempts == 3
    assert task.history[-1].status is S.FAILED


@pytest.mark.asyncio
async def test_timeout_recorded_as_timeout(designed_task, scripted):
    scripted.config = AdapterConfig(provider="scripted", timeout_seconds=0.01, max_attempts=2)
    scripted.delay = 0.5
    task = designed_task()
    engine = ExecutionEngine()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.5)

    assert outcome.status is S.FAILED
    assert task.attempts == 2
    assert [h.reason.kind for h in task.history] == [FailureKind.TIMEOUT, FailureKind.TIMEOUT]


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_generation_error(designed_task, scripted):
    scripted.script = [RuntimeError("kaput"), Artifact(content="fine", confidence=1.0)]
    task = designed_task()
    engine = _confidence_only()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert outcome.status is S.SUCCEEDED
    assert task.attempts == 2
    first = task.history[0]
    assert first.reason.kind is FailureKind.GENERATION_ERROR
    assert "RuntimeError" in first.reason.message


@pytest.mark.asyncio
async def test_single_attempt_budget(designed_task, scripted):
    scripted.config = AdapterConfig(provider="scripted", max_attempts=1)
    scripted.script = [Artifact(content="nope", confidence=0.2)]
    task = designed_task()
    engine = _confidence_only()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert outcome.status is S.FAILED
    assert task.attempts == 1
    assert S.REFINING not in task.transitions


@pytest.mark.asyncio
@pytest.mark.parametrize("confidences", [[0.3, 0.95], [0.79, 0.8], [0.1, 0.2, 0.3]])
async def test_accepted_quality_never_below_threshold(designed_task, scripted, confidences):
    scripted.script = [Artifact(content=f"v{i}", confidence=c) for i, c in enumerate(confidences)]
    task = designed_task()
    engine = _confidence_only()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.8)

    assert task.attempts <= scripted.config.max_attempts
    for h in task.history:
        assert h.accepted == (h.quality >= 0.8)
    if outcome.status is S.SUCCEEDED:
        assert outcome.quality >= 0.8


# ── Verification toggles ─────────────────────────────────────


@pytest.mark.asyncio
async def test_disabled_verification_skips_structural_checks(designed_task, scripted):
    scripted.config = AdapterConfig(provider="scripted", enable_verification=False)
    scripted.script = [Artifact(content="just some prose, no code", confidence=0.5)]
    task = designed_task("Write a parser", TaskKind.CODE_GENERATION)
    engine = ExecutionEngine()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.75)

    assert outcome.status is S.SUCCEEDED
    assert outcome.quality == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_enabled_verification_rejects_missing_code(designed_task, scripted):
    scripted.config = AdapterConfig(provider="scripted", max_attempts=1)
    scripted.script = [Artifact(content="just some prose, no code", confidence=0.5)]
    task = designed_task("Write a parser", TaskKind.CODE_GENERATION)
    engine = ExecutionEngine()

    outcome = await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.75)

    assert outcome.status is S.FAILED
    assert outcome.quality == pytest.approx(0.2)
    assert "no code block found" in (outcome.error or "")


# ── Cancellation ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancellation_marks_task_cancelled(designed_task, scripted):
    scripted.delay = 5.0
    task = designed_task()
    engine = ExecutionEngine()
    run = asyncio.create_task(
        engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.5)
    )
    await asyncio.sleep(0.05)
    run.cancel()

    with pytest.raises(asyncio.CancelledError):
        await run

    assert task.status is S.CANCELLED
    assert task.history[-1].reason.kind is FailureKind.CANCELLED
    assert task.history[-1].status is S.CANCELLED


# ── Monitoring ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_monitor_sees_every_generate_call(designed_task, scripted):
    scripted.script = [GenerationError("nope")]
    monitor = PerformanceMonitor()
    task = designed_task()
    engine = ExecutionEngine(monitor=monitor)

    await engine.execute(task, scripted, engine.design(task, GENERAL), threshold=0.5)

    metrics = monitor.metrics()
    assert metrics.total_requests == 3
    assert metrics.failed_requests == 3
    assert metrics.success_rate == 0.0


# ── refine_request ───────────────────────────────────────────


def test_refine_request_keeps_last_three_feedback_items(designed_task):
    task = designed_task()
    request = ExecutionEngine().design(task, GENERAL)
    for i in range(5):
        request = refine_request(request, FailureReason(FailureKind.REJECTED, f"issue {i}"))

    feedback = request.metadata["feedback"]
    assert len(feedback) == 3
    assert "issue 4" in feedback[-1]
    assert "issue 0" not in request.prompt
    assert request.prompt.startswith(request.metadata["base_prompt"])


def test_refine_request_truncates_previous_output(designed_task):
    task = designed_task()
    request = ExecutionEngine().design(task, GENERAL)
    long_output = Artifact(content="x" * 5000)

    refined = refine_request(request, None, long_output)

    assert "## YOUR LAST OUTPUT" in refined.prompt
    assert "x" * 1500 in refined.prompt
    assert "x" * 1501 not in refined.prompt


# ── Lifecycle guard ──────────────────────────────────────────


def test_terminal_task_refuses_further_transitions():
    task = Task(description="t")
    task.transition_to(S.CANCELLED)
    with pytest.raises(InvalidTransition):
        task.transition_to(S.ANALYZING)
