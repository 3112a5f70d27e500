"""Backend adapters for enjambre."""

from __future__ import annotations

from enjambre.adapters.base import AdapterCapabilities, BackendAdapter, GenerationRequest
from enjambre.adapters.registry import (
    build_registry,
    create_adapter,
    list_adapter_types,
    register_adapter_type,
)

__all__ = [
    "AdapterCapabilities",
    "BackendAdapter",
    "GenerationRequest",
    "build_registry",
    "create_adapter",
    "list_adapter_types",
    "register_adapter_type",
]
