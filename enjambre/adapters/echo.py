"""Offline deterministic backend for dry runs and integration tests."""

from __future__ import annotations

import re

from enjambre.adapters.base import BackendAdapter, GenerationRequest
from enjambre.swarm.types import Artifact, TaskKind


class EchoAdapter(BackendAdapter):
    """Answer every request locally, shaped after the task kind."""

    name = "echo"
    supports_verification = True

    async def _generate(self, request: GenerationRequest) -> Artifact:
        headline = _headline(request.prompt)
        kind = request.kind.base_kind
        if kind is TaskKind.CODE_GENERATION:
            language = request.language or "python"
            content = _code_stub(headline, language)
        elif kind is TaskKind.FORECASTING:
            language = None
            content = f"Forecast for: {headline}\nQ1: 100\nQ2: 110\nQ3: 121"
        elif kind is TaskKind.CLASSIFICATION:
            language = None
            content = "label: general"
        else:
            language = None
            content = headline or "ok"

        return Artifact(
            content=content,
            confidence=self._confidence_for(request.attempt),
            model="echo",
            language=language,
            metadata={"backend": self.identifier, "attempt": request.attempt},
        )

    def _confidence_for(self, attempt: int) -> float | None:
        script = self.config.confidence_script
        if script:
            # Past the end of the script the last value repeats
            return script[min(attempt, len(script)) - 1]
        return self.config.confidence

    async def health_check(self) -> bool:
        return True


def _headline(prompt: str) -> str:
    """First line of the prompt that is not a markdown heading."""
    for line in prompt.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            return line
    return ""


def _code_stub(headline: str, language: str) -> str:
    name = re.sub(r"[^a-z0-9]+", "_", headline.lower()).strip("_")[:40] or "solution"
    if name[0].isdigit():
        name = f"task_{name}"
    headline = headline.replace("\\", "").replace('"', "'")
    if language == "python":
        body = f'def {name}():\n    """{headline}"""\n    return None\n'
    elif language == "rust":
        body = f"// {headline}\npub fn {name}() {{}}\n"
    else:
        body = f"// {headline}\nfunction {name}() {{}}\n"
    return f"```{language}\n{body}```"
