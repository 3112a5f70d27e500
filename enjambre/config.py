"""Swarm and adapter configuration: dataclasses plus .enjambre.yml / env loading."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from enjambre.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".enjambre.yml"

# Backend identifier -> credentials env var and LiteLLM model prefix
PROVIDER_DEFS: dict[str, dict[str, Any]] = {
    "gemini": {
        "name": "Google (Gemini)",
        "env_var": "GEMINI_API_KEY",
        "default_model": "gemini/gemini-1.5-flash",
    },
    "anthropic": {
        "name": "Anthropic (Claude)",
        "env_var": "ANTHROPIC_API_KEY",
        "default_model": "claude-sonnet-4-6",
    },
    "openai": {
        "name": "OpenAI",
        "env_var": "OPENAI_API_KEY",
        "default_model": "gpt-4o-mini",
    },
    "ollama": {
        "name": "Ollama (local)",
        "env_var": None,
        "default_model": "ollama/llama3",
        "api_base": "http://localhost:11434",
    },
    "echo": {
        "name": "Echo (offline)",
        "env_var": None,
        "default_model": "echo",
    },
}


@dataclass
class AdapterConfig:
    """Per-backend connection parameters.

    The credential is opaque to the core: it is only handed to the adapter.
    """

    provider: str | None = None  # adapter type; defaults to the backend identifier
    api_key: str | None = field(default=None, repr=False)
    api_key_env: str | None = None
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    enable_verification: bool = True
    base_url: str | None = None
    project_id: str | None = None  # Vertex AI
    location: str | None = None  # Vertex AI
    model: str | None = None
    model_fast: str | None = None
    model_quality: str | None = None
    temperature: float = 0.4
    confidence: float | None = None  # fixed self-reported confidence (echo backend)
    confidence_script: list[float] = field(default_factory=list)  # per-attempt, echo backend

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}")
        for value in [self.confidence, *self.confidence_script]:
            if value is not None and not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"confidence must be in [0, 1], got {value}")

    def resolve_api_key(self) -> str | None:
        """Return the explicit key, else the value of ``api_key_env``."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env) or None
        return None

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> AdapterConfig:
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown keys for adapter '{name}': {', '.join(sorted(unknown))}"
            )
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid config for adapter '{name}': {e}") from e


@dataclass
class SwarmConfig:
    """Global swarm policy."""

    max_concurrent_tasks: int = 4
    default_adapter: str = "gemini"
    enable_strategy_selection: bool = True
    enable_adaptive_learning: bool = True
    quality_threshold: float = 0.8
    learning_rate: float = 0.2  # EWMA alpha
    min_weight: float = 0.1
    max_weight: float = 2.0
    fallback_affinity: float = 0.5
    performance_monitoring: bool = True

    def __post_init__(self) -> None:
        if self.max_concurrent_tasks < 1:
            raise ConfigurationError(
                f"max_concurrent_tasks must be a positive integer, got {self.max_concurrent_tasks}"
            )
        if not 0.0 <= self.quality_threshold <= 1.0:
            raise ConfigurationError(
                f"quality_threshold must be in [0, 1], got {self.quality_threshold}"
            )
        if not 0.0 < self.learning_rate <= 1.0:
            raise ConfigurationError(f"learning_rate must be in (0, 1], got {self.learning_rate}")
        if not 0.0 < self.min_weight <= self.max_weight:
            raise ConfigurationError(
                f"weight bounds must satisfy 0 < min <= max, got "
                f"[{self.min_weight}, {self.max_weight}]"
            )
        if not 0.0 <= self.fallback_affinity <= 1.0:
            raise ConfigurationError(
                f"fallback_affinity must be in [0, 1], got {self.fallback_affinity}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwarmConfig:
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown swarm config keys: {', '.join(sorted(unknown))}")
        return cls(**data)


@dataclass
class Settings:
    """Everything the orchestrator needs, already validated."""

    swarm: SwarmConfig = field(default_factory=SwarmConfig)
    adapters: dict[str, AdapterConfig] = field(default_factory=dict)
    log_level: str = "info"


def load_config(cwd: str) -> dict[str, Any] | None:
    """Load config from .enjambre.yml if it exists, else return None."""
    import yaml

    config_path = Path(cwd) / CONFIG_FILENAME
    if not config_path.exists():
        return None
    with config_path.open() as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    return data if isinstance(data, dict) else None


def load_settings(cwd: str, *, use_dotenv: bool = True) -> Settings:
    """Build settings from defaults < .enjambre.yml < environment variables."""
    if use_dotenv:
        from dotenv import load_dotenv

        load_dotenv(Path(cwd) / ".env")

    file_cfg = load_config(cwd) or {}

    swarm_data = dict(file_cfg.get("swarm") or {})
    for key, env_var, parse in _SWARM_ENV:
        raw = os.environ.get(env_var)
        if raw is not None and raw != "":
            swarm_data[key] = parse(raw, env_var)
    swarm = SwarmConfig.from_dict(swarm_data)

    adapters: dict[str, AdapterConfig] = {}
    for name, data in (file_cfg.get("adapters") or {}).items():
        adapters[str(name)] = AdapterConfig.from_dict(str(name), dict(data or {}))

    if "gemini" not in adapters and os.environ.get("GEMINI_API_KEY"):
        adapters["gemini"] = AdapterConfig(api_key_env="GEMINI_API_KEY")
    gemini = adapters.get("gemini")
    if gemini is not None:
        gemini.project_id = gemini.project_id or os.environ.get("GOOGLE_CLOUD_PROJECT")
        gemini.location = gemini.location or os.environ.get("GOOGLE_CLOUD_LOCATION")

    log_level = (
        os.environ.get("ENJAMBRE_LOG_LEVEL")
        or (file_cfg.get("logging") or {}).get("level")
        or "info"
    )
    logger.debug("Loaded settings: %d adapter(s), default=%s", len(adapters), swarm.default_adapter)
    return Settings(swarm=swarm, adapters=adapters, log_level=str(log_level).lower())


def _parse_bool(raw: str, env_var: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{env_var} must be a boolean, got {raw!r}")


def _parse_int(raw: str, env_var: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from e


def _parse_float(raw: str, env_var: str) -> float:
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{env_var} must be a number, got {raw!r}") from e


def _parse_str(raw: str, env_var: str) -> str:
    return raw.strip()


_SWARM_ENV = (
    ("max_concurrent_tasks", "MAX_CONCURRENT_TASKS", _parse_int),
    ("default_adapter", "DEFAULT_ADAPTER", _parse_str),
    ("enable_strategy_selection", "ENABLE_NEURAL_SELECTION", _parse_bool),
    ("enable_adaptive_learning", "ENABLE_ADAPTIVE_LEARNING", _parse_bool),
    ("quality_threshold", "QUALITY_THRESHOLD", _parse_float),
)


def render_config_template(default_adapter: str = "gemini") -> dict[str, Any]:
    """Starter .enjambre.yml content used by ``enjambre init``."""
    provider = PROVIDER_DEFS.get(default_adapter, PROVIDER_DEFS["gemini"])
    adapter: dict[str, Any] = {
        "model": provider["default_model"],
        "timeout_seconds": 30,
        "max_attempts": 3,
        "enable_verification": True,
    }
    if provider.get("env_var"):
        adapter["api_key_env"] = provider["env_var"]
    if provider.get("api_base"):
        adapter["base_url"] = provider["api_base"]
    return {
        "swarm": {
            "max_concurrent_tasks": 4,
            "default_adapter": default_adapter,
            "enable_strategy_selection": True,
            "enable_adaptive_learning": True,
            "quality_threshold": 0.8,
        },
        "adapters": {default_adapter: adapter},
        "logging": {"level": "info"},
    }
