"""Shared fixtures: a scripted in-memory backend and task helpers."""

from __future__ import annotations

import asyncio

import pytest

from enjambre.adapters.base import BackendAdapter, GenerationRequest
from enjambre.adapters.registry import register_adapter_type
from enjambre.config import AdapterConfig
from enjambre.swarm.types import Artifact, Task, TaskKind, TaskStatus


class ScriptedAdapter(BackendAdapter):
    """Replays a script of artifacts / exceptions, one entry per call.

    Past the end of the script the last entry repeats. With an empty
    script every call returns a high-confidence plain answer.
    """

    name = "scripted"

    def __init__(self, config: AdapterConfig, *, identifier: str | None = None) -> None:
        super().__init__(config, identifier=identifier)
        self.script: list[Artifact | Exception] = []
        self.delay = 0.0
        self.healthy: bool | Exception = True
        self.requests: list[GenerationRequest] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _generate(self, request: GenerationRequest) -> Artifact:
        self.requests.append(request)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        if not self.script:
            return Artifact(content="42", confidence=1.0)
        item = self.script[min(len(self.requests), len(self.script)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    async def health_check(self) -> bool:
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy


register_adapter_type("scripted", ScriptedAdapter)


def _designed_task(description: str = "do the thing", kind: TaskKind = TaskKind.GENERAL) -> Task:
    task = Task(description=description, kind=kind)
    task.transition_to(TaskStatus.ANALYZING)
    task.transition_to(TaskStatus.DESIGNING)
    return task


@pytest.fixture
def designed_task():
    """Factory for tasks already moved through Analyze and Design."""
    return _designed_task


@pytest.fixture
def scripted() -> ScriptedAdapter:
    return ScriptedAdapter(AdapterConfig(provider="scripted", max_attempts=3), identifier="fake")
