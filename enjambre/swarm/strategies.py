"""Strategy catalog: the specializations a task can be routed to."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from enjambre.swarm.types import StrategyTag, TaskKind


@dataclass(frozen=True)
class StrategySpec:
    """A named specialization with a static capability score."""

    tag: StrategyTag
    base_score: float
    description: str
    affinities: tuple[str, ...] = ()
    kinds: frozenset[TaskKind] = frozenset()
    use_cases: tuple[str, ...] = ()
    parameters: MappingProxyType[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not 0.0 <= self.base_score <= 1.0:
            raise ValueError(f"base_score for {self.tag} must be in [0, 1], got {self.base_score}")

    def matches(self, kind: TaskKind, description: str) -> bool:
        """True if the task kind or any affinity keyword matches."""
        if kind.base_kind in self.kinds:
            return True
        text = description.lower()
        return any(keyword.lower() in text for keyword in self.affinities)

    def prompt_guidance(self) -> str:
        """Short instructions injected into backend requests for this strategy."""
        return _GUIDANCE[self.tag]


_GUIDANCE: dict[StrategyTag, str] = {
    StrategyTag.SEQUENCE_MODEL: (
        "Treat the input as an ordered sequence. Preserve temporal order and "
        "state any windowing or lag assumptions explicitly."
    ),
    StrategyTag.FORECASTING_MODEL: (
        "Produce a quantitative forecast. Give concrete numeric predictions per "
        "period, the horizon covered, and the method used."
    ),
    StrategyTag.LANGUAGE_MODEL: (
        "Produce complete, working output. When writing code, return it in a "
        "single fenced code block tagged with its language."
    ),
    StrategyTag.GENERAL_MODEL: (
        "Answer directly and concisely. Prefer a short, verifiable result."
    ),
}


DEFAULT_CATALOG: tuple[StrategySpec, ...] = (
    StrategySpec(
        tag=StrategyTag.SEQUENCE_MODEL,
        base_score=0.85,
        description="LSTM-style model for time series and long sequences",
        affinities=("secuencia", "sequence", "serie", "series", "sensor", "iot", "temporal"),
        use_cases=(
            "Sales prediction",
            "IoT sensor analysis",
            "Sequential text processing",
        ),
        parameters=MappingProxyType({"hidden_size": 128, "num_layers": 2, "dropout": 0.2}),
    ),
    StrategySpec(
        tag=StrategyTag.FORECASTING_MODEL,
        base_score=0.92,
        description="N-BEATS-style model for high precision forecasting",
        affinities=(
            "predecir", "predicción", "prediccion", "forecast", "pronóstico",
            "predict", "demanda", "demand", "trimestre", "quarter",
        ),
        kinds=frozenset({TaskKind.FORECASTING}),
        use_cases=(
            "Energy demand prediction",
            "Financial forecasting",
            "Inventory planning",
        ),
        parameters=MappingProxyType(
            {"forecast_length": 24, "backcast_length": 168, "hidden_layer_units": 512}
        ),
    ),
    StrategySpec(
        tag=StrategyTag.LANGUAGE_MODEL,
        base_score=0.88,
        description="Transformer for language understanding and code generation",
        affinities=(
            "código", "codigo", "code", "texto", "text", "lenguaje", "language",
            "function", "función", "script", "implement",
        ),
        kinds=frozenset({TaskKind.CODE_GENERATION}),
        use_cases=(
            "Code generation",
            "Document analysis",
            "Machine translation",
        ),
        parameters=MappingProxyType(
            {"d_model": 512, "num_heads": 8, "num_layers": 6, "max_seq_length": 2048}
        ),
    ),
    StrategySpec(
        tag=StrategyTag.GENERAL_MODEL,
        base_score=0.75,
        description="Customizable feed-forward network for general tasks",
        affinities=("clasificar", "classify", "classification", "regresión", "regression"),
        kinds=frozenset({TaskKind.CLASSIFICATION, TaskKind.GENERAL}),
        use_cases=(
            "General classification",
            "Simple regression",
            "Rapid prototyping",
        ),
        parameters=MappingProxyType(
            {"layers": (10, 15, 10, 1), "activation": "sigmoid_symmetric", "learning_rate": 0.01}
        ),
    ),
)


def get_strategy(
    tag: StrategyTag | str,
    catalog: tuple[StrategySpec, ...] = DEFAULT_CATALOG,
) -> StrategySpec | None:
    """Look up a catalog entry by tag."""
    for spec in catalog:
        if spec.tag == tag:
            return spec
    return None


def get_all_strategies_info(
    catalog: tuple[StrategySpec, ...] = DEFAULT_CATALOG,
) -> list[dict[str, Any]]:
    """Get info about all strategies for display purposes."""
    return [
        {
            "tag": str(spec.tag),
            "base_score": spec.base_score,
            "description": spec.description,
            "kinds": sorted(str(k) for k in spec.kinds),
            "affinities": list(spec.affinities),
            "use_cases": list(spec.use_cases),
        }
        for spec in catalog
    ]
