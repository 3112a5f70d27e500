"""Verification pipeline: structural checks plus backend confidence.

quality = STRUCTURAL_WEIGHT * structural + (1 - STRUCTURAL_WEIGHT) * confidence

The structural score depends on the task kind; confidence is the backend's
self-reported value, or NEUTRAL_CONFIDENCE when it offers none. An
artifact is accepted iff quality >= threshold. Verification never mutates
the task or any shared state.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass

from enjambre.swarm.types import Artifact, FailureKind, FailureReason, Task, TaskKind

STRUCTURAL_WEIGHT = 0.6
NEUTRAL_CONFIDENCE = 0.5

_CODE_BLOCK_RE = re.compile(r"```([A-Za-z0-9_+-]*)[^\n]*\n(.*?)```", re.DOTALL)
_CODE_HINT_RE = re.compile(
    r"^\s*(def |class |fn |pub fn |function |import |from \S+ import "
    r"|#include|package |const |let )",
    re.MULTILINE,
)
_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
_CLASSIFICATION_MAX_CHARS = 500


@dataclass
class Verdict:
    accepted: bool
    quality: float
    structural: float
    confidence: float
    reason: FailureReason | None = None


class VerificationPipeline:
    """Score artifacts against task-kind acceptance criteria."""

    def __init__(
        self,
        structural_weight: float = STRUCTURAL_WEIGHT,
        neutral_confidence: float = NEUTRAL_CONFIDENCE,
    ) -> None:
        if not 0.0 <= structural_weight <= 1.0:
            raise ValueError(f"structural_weight must be in [0, 1], got {structural_weight}")
        self.structural_weight = structural_weight
        self.neutral_confidence = neutral_confidence

    def verify(
        self,
        task: Task,
        artifact: Artifact,
        threshold: float,
        *,
        structural_checks: bool = True,
    ) -> Verdict:
        content = artifact.content or ""
        if not content.strip():
            structural, note = 0.0, "empty artifact"
        elif not structural_checks:
            structural, note = 1.0, ""
        else:
            structural, note = structural_score(task.kind, content, task.preferred_language)

        confidence = (
            self.neutral_confidence
            if artifact.confidence is None
            else min(1.0, max(0.0, artifact.confidence))
        )
        quality = round(
            self.structural_weight * structural + (1.0 - self.structural_weight) * confidence,
            6,
        )
        accepted = quality >= threshold

        reason = None
        if not accepted:
            details = f"quality {quality:.2f} below threshold {threshold:.2f}"
            if note:
                details += f"; {note}"
            elif confidence < threshold:
                details += f"; low backend confidence ({confidence:.2f})"
            reason = FailureReason(kind=FailureKind.REJECTED, message=details)
        return Verdict(
            accepted=accepted,
            quality=quality,
            structural=structural,
            confidence=confidence,
            reason=reason,
        )


def structural_score(
    kind: TaskKind, content: str, language: str | None = None
) -> tuple[float, str]:
    """Return (score, note) for the kind-specific shape check."""
    base = kind.base_kind
    if base is TaskKind.CODE_GENERATION:
        return _code_score(content, language)
    if base is TaskKind.FORECASTING:
        if _NUMBER_RE.search(content):
            return 1.0, ""
        return 0.3, "forecast contains no numeric values"
    if base is TaskKind.CLASSIFICATION:
        if len(content.strip()) <= _CLASSIFICATION_MAX_CHARS:
            return 1.0, ""
        return 0.4, "classification answer is not a short label"
    return 1.0, ""


def _code_score(content: str, language: str | None) -> tuple[float, str]:
    blocks = _CODE_BLOCK_RE.findall(content)
    if not blocks:
        if _CODE_HINT_RE.search(content):
            return 0.6, "code is not wrapped in a fenced code block"
        return 0.0, "no code block found"

    for tag, body in blocks:
        lang = (tag or language or "").lower()
        if lang in ("python", "py"):
            try:
                ast.parse(body)
            except SyntaxError as e:
                return 0.2, f"python syntax error at line {e.lineno}: {e.msg}"
    return 1.0, ""
