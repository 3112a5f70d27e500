"""Adapter registry: maps backend type strings to adapter classes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from enjambre.adapters.base import BackendAdapter
from enjambre.adapters.echo import EchoAdapter
from enjambre.adapters.litellm_adapter import LiteLLMAdapter
from enjambre.config import AdapterConfig
from enjambre.errors import ConfigurationError

logger = logging.getLogger(__name__)

_REGISTRY: dict[str, type[BackendAdapter]] = {
    "gemini": LiteLLMAdapter,
    "gemini-cli": LiteLLMAdapter,
    "vertex": LiteLLMAdapter,
    "litellm": LiteLLMAdapter,
    "anthropic": LiteLLMAdapter,
    "openai": LiteLLMAdapter,
    "ollama": LiteLLMAdapter,
    # Offline / testing
    "echo": EchoAdapter,
}


def create_adapter(identifier: str, config: AdapterConfig) -> BackendAdapter:
    """Instantiate the adapter for ``identifier``.

    The adapter type comes from ``config.provider`` when set, otherwise from
    the identifier itself, so several backends of one type can coexist
    under different names.
    """
    adapter_type = (config.provider or identifier).strip().lower()
    if adapter_type not in _REGISTRY:
        available = ", ".join(_REGISTRY.keys())
        raise ConfigurationError(
            f"Unsupported adapter: '{adapter_type}' (for backend '{identifier}'). "
            f"Available: {available}"
        )
    adapter_cls = _REGISTRY[adapter_type]
    logger.info("Creating %s for backend '%s'", adapter_cls.__name__, identifier)
    return adapter_cls(config, identifier=identifier)


def build_registry(adapter_configs: Mapping[str, AdapterConfig]) -> Mapping[str, BackendAdapter]:
    """Create every configured adapter and freeze the result."""
    if not adapter_configs:
        raise ConfigurationError("No adapters configured; at least one backend is required")
    adapters = {name: create_adapter(name, cfg) for name, cfg in adapter_configs.items()}
    return MappingProxyType(adapters)


def register_adapter_type(name: str, adapter_cls: type[BackendAdapter]) -> None:
    """Make a custom adapter class available to ``create_adapter``."""
    _REGISTRY[name.strip().lower()] = adapter_cls


def list_adapter_types() -> list[str]:
    return list(_REGISTRY.keys())
