"""Base backend adapter: the uniform interface over generation services."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from enjambre.config import AdapterConfig
from enjambre.errors import GenerationError, GenerationTimeout
from enjambre.swarm.types import Artifact, StrategyTag, TaskKind

logger = logging.getLogger(__name__)


@dataclass
class GenerationRequest:
    """Backend-agnostic request built during the Design phase."""

    task_id: str
    prompt: str
    kind: TaskKind = TaskKind.GENERAL
    system_prompt: str = ""
    strategy: StrategyTag | None = None
    profile: str = "fast"  # fast | quality
    attempt: int = 1
    language: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AdapterCapabilities:
    """Static description of what a backend can do."""

    name: str
    version: str
    supported_languages: list[str] = field(default_factory=list)
    max_context_tokens: int = 0
    supports_function_calling: bool = False
    supports_verification: bool = True


class BackendAdapter(ABC):
    """Abstract base class for all generation backends.

    Subclass this to plug in a new backend. Each adapter bundles:
    - **name**: adapter type identifier (used by the factory)
    - **supports_verification**: whether its output can be scored
    - **_generate()**: the actual backend call

    The public :meth:`generate` wraps ``_generate`` with the per-call
    timeout and normalizes every failure into :class:`GenerationError`.
    Instances are shared between concurrently running tasks, so
    ``_generate`` must not keep per-call state on ``self``.

    Example::

        class MyAdapter(BackendAdapter):
            name = "mine"

            async def _generate(self, request: GenerationRequest) -> Artifact:
                text = await call_my_service(request.prompt)
                return Artifact(content=text, confidence=0.7)

            async def health_check(self) -> bool:
                return True
    """

    name: ClassVar[str] = ""
    version: ClassVar[str] = "0.1.0"
    supports_verification: ClassVar[bool] = True

    def __init__(self, config: AdapterConfig, *, identifier: str | None = None) -> None:
        self.config = config
        self.identifier = identifier or self.name

    async def generate(self, request: GenerationRequest, timeout: float | None = None) -> Artifact:
        """Run one generation, bounded by ``timeout`` (defaults to the config's)."""
        limit = timeout if timeout is not None else self.config.timeout_seconds
        try:
            return await asyncio.wait_for(self._generate(request), timeout=limit)
        except TimeoutError as e:
            raise GenerationTimeout(limit, backend=self.identifier) from e
        except GenerationError:
            raise
        except Exception as e:
            logger.warning("Backend %s raised %s: %s", self.identifier, type(e).__name__, e)
            raise GenerationError(f"{type(e).__name__}: {e}", backend=self.identifier) from e

    @abstractmethod
    async def _generate(self, request: GenerationRequest) -> Artifact:
        """Produce one artifact for ``request``."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return True if the backend looks usable."""
        ...

    def describe(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            name=self.identifier,
            version=self.version,
            supports_verification=self.supports_verification,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(identifier={self.identifier!r})"
