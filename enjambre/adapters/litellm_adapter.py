"""LiteLLM-backed adapter: Gemini, Vertex AI, Claude, OpenAI, Ollama, ..."""

from __future__ import annotations

import logging
import re

import httpx
from langchain_core.messages import HumanMessage, SystemMessage

from enjambre.adapters.base import AdapterCapabilities, BackendAdapter, GenerationRequest
from enjambre.config import PROVIDER_DEFS
from enjambre.errors import GenerationError
from enjambre.llm.factory import get_llm
from enjambre.swarm.types import Artifact

logger = logging.getLogger(__name__)

_CONFIDENCE_RE = re.compile(r"^\s*CONFIDENCE:\s*([01](?:\.\d+)?)\s*$", re.IGNORECASE | re.MULTILINE)
_FENCE_LANG_RE = re.compile(r"```([A-Za-z0-9_+-]+)")

_CONFIDENCE_INSTRUCTION = (
    "\n\nAfter your answer, add a final line of the form `CONFIDENCE: <0.0-1.0>` "
    "with your confidence that the answer fully satisfies the request."
)


class LiteLLMAdapter(BackendAdapter):
    """Talk to any LiteLLM-supported chat model through LangChain."""

    name = "litellm"
    version = "0.3.0"
    supports_verification = True

    @property
    def provider(self) -> str:
        return (self.config.provider or self.identifier).lower()

    def resolve_model(self, profile: str = "fast") -> str:
        """Pick the model string for a profile, honoring Vertex AI settings."""
        if profile == "quality" and self.config.model_quality:
            model = self.config.model_quality
        elif profile == "fast" and self.config.model_fast:
            model = self.config.model_fast
        elif self.config.model:
            model = self.config.model
        else:
            model = PROVIDER_DEFS.get(self.provider, PROVIDER_DEFS["gemini"])["default_model"]

        if self.config.project_id and self.config.location and model.startswith("gemini/"):
            model = "vertex_ai/" + model.removeprefix("gemini/")
        return model

    async def _generate(self, request: GenerationRequest) -> Artifact:
        model = self.resolve_model(request.profile)
        extra: dict[str, str] = {}
        api_key = self.config.resolve_api_key()
        if api_key:
            extra["api_key"] = api_key
        if model.startswith("vertex_ai/"):
            extra["vertex_project"] = str(self.config.project_id)
            extra["vertex_location"] = str(self.config.location)

        llm = get_llm(model, self.config.temperature, self.config.base_url, **extra)
        messages = []
        if request.system_prompt:
            messages.append(SystemMessage(content=request.system_prompt))
        messages.append(HumanMessage(content=request.prompt + _CONFIDENCE_INSTRUCTION))

        logger.debug("Calling %s (task=%s attempt=%d)", model, request.task_id, request.attempt)
        response = await llm.ainvoke(messages)
        content, confidence = parse_confidence(str(response.content))
        if not content.strip():
            raise GenerationError(f"{model} returned an empty response", backend=self.identifier)

        language_match = _FENCE_LANG_RE.search(content)
        return Artifact(
            content=content,
            confidence=confidence,
            model=model,
            language=language_match.group(1).lower() if language_match else request.language,
        )

    async def health_check(self) -> bool:
        """Ping ``base_url`` when set, otherwise check credentials are present."""
        if self.config.base_url:
            try:
                timeout = min(self.config.timeout_seconds, 10.0)
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(self.config.base_url)
                return response.status_code < 500
            except httpx.HTTPError as e:
                logger.warning("Health check for %s failed: %s", self.identifier, e)
                return False

        if self.config.resolve_api_key():
            return True
        provider = PROVIDER_DEFS.get(self.provider)
        if provider is not None and provider.get("env_var") is None:
            return True
        logger.warning("No credentials configured for backend %s", self.identifier)
        return False

    def describe(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            name=self.identifier,
            version=self.version,
            supported_languages=["python", "rust", "javascript", "typescript", "sql"],
            max_context_tokens=32_768,
            supports_function_calling=True,
            supports_verification=self.supports_verification,
        )


def parse_confidence(content: str) -> tuple[str, float | None]:
    """Split a trailing ``CONFIDENCE: x`` line off a model answer."""
    matches = list(_CONFIDENCE_RE.finditer(content))
    if not matches:
        return content.strip(), None
    last = matches[-1]
    confidence = min(1.0, max(0.0, float(last.group(1))))
    stripped = (content[: last.start()] + content[last.end() :]).strip()
    return stripped, confidence
