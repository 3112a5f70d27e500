"""Tests for the strategy catalog and selector."""

from __future__ import annotations

from types import MappingProxyType

import pytest

from enjambre.errors import ConfigurationError
from enjambre.swarm.selector import StrategySelector
from enjambre.swarm.strategies import (
    DEFAULT_CATALOG,
    StrategySpec,
    get_all_strategies_info,
    get_strategy,
)
from enjambre.swarm.types import StrategyTag, Task, TaskKind

# ── Catalog ──────────────────────────────────────────────────


def test_default_catalog_order_and_scores():
    assert [str(s.tag) for s in DEFAULT_CATALOG] == [
        "sequence-model",
        "forecasting-model",
        "language-model",
        "general-model",
    ]
    assert [s.base_score for s in DEFAULT_CATALOG] == [0.85, 0.92, 0.88, 0.75]


def test_strategy_spec_is_immutable():
    spec = DEFAULT_CATALOG[0]
    with pytest.raises(AttributeError):
        spec.base_score = 0.1  # type: ignore[misc]
    with pytest.raises(TypeError):
        spec.parameters["hidden_size"] = 1  # type: ignore[index]


def test_strategy_spec_rejects_out_of_range_score():
    with pytest.raises(ValueError):
        StrategySpec(tag=StrategyTag.GENERAL_MODEL, base_score=1.5, description="bad")


def test_get_strategy_by_tag_or_string():
    assert get_strategy(StrategyTag.LANGUAGE_MODEL) is DEFAULT_CATALOG[2]
    assert get_strategy("general-model") is DEFAULT_CATALOG[3]
    assert get_strategy("unknown") is None


def test_strategies_info_lists_use_cases():
    info = get_all_strategies_info()
    assert info[1]["tag"] == "forecasting-model"
    assert "Financial forecasting" in info[1]["use_cases"]
    assert info[1]["kinds"] == ["forecasting"]


def test_affinity_matching_is_case_insensitive():
    spec = get_strategy(StrategyTag.FORECASTING_MODEL)
    assert spec.matches(TaskKind.GENERAL, "PREDECIR la demanda")
    assert not spec.matches(TaskKind.GENERAL, "write a poem")


def test_affinity_matches_on_mapped_kind():
    spec = get_strategy(StrategyTag.FORECASTING_MODEL)
    assert spec.matches(TaskKind.REGRESSION, "anything")
    assert spec.matches(TaskKind.DATA_ANALYSIS, "anything")


# ── Selector ─────────────────────────────────────────────────


def test_empty_catalog_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        StrategySelector(())


def test_forecasting_description_selects_forecasting_model():
    task = Task(description="Predecir ventas del próximo trimestre", kind=TaskKind.FORECASTING)
    selection = StrategySelector().select(task, ["gemini"], "gemini")

    assert selection.strategy.tag is StrategyTag.FORECASTING_MODEL
    assert selection.backend == "gemini"
    assert len(selection.alternates) == 3
    assert selection.ranking[0].score == pytest.approx(0.92)


def test_code_task_selects_language_model():
    task = Task(description="Write a CSV parser", kind=TaskKind.CODE_GENERATION)
    selection = StrategySelector().select(task, ["echo"], "echo")
    assert selection.strategy.tag is StrategyTag.LANGUAGE_MODEL


def test_unmatched_entries_use_fallback_affinity():
    task = Task(description="zzz", kind=TaskKind.CLASSIFICATION)
    ranking = StrategySelector(fallback_affinity=0.5).rank(task)
    scores = {r.spec.tag: r.score for r in ranking}
    assert scores[StrategyTag.SEQUENCE_MODEL] == pytest.approx(0.85 * 0.5)
    assert scores[StrategyTag.GENERAL_MODEL] == pytest.approx(0.75)
    assert ranking[0].spec.tag is StrategyTag.GENERAL_MODEL


def test_ties_keep_catalog_order():
    a = StrategySpec(tag=StrategyTag.SEQUENCE_MODEL, base_score=0.5, description="a")
    b = StrategySpec(tag=StrategyTag.GENERAL_MODEL, base_score=0.5, description="b")
    ranking = StrategySelector((a, b)).rank(Task(description="x"))
    assert [r.spec for r in ranking] == [a, b]
    ranking = StrategySelector((b, a)).rank(Task(description="x"))
    assert [r.spec for r in ranking] == [b, a]


def test_learned_weight_can_change_the_winner():
    weights = {StrategyTag.FORECASTING_MODEL: 0.1}
    selector = StrategySelector(weight_of=lambda tag: weights.get(tag, 1.0))
    task = Task(description="Predecir ventas del próximo trimestre", kind=TaskKind.FORECASTING)

    selection = selector.select(task, ["gemini"], "gemini")

    assert selection.strategy.tag is not StrategyTag.FORECASTING_MODEL
    forecasting = next(r for r in selection.ranking if r.spec.tag is StrategyTag.FORECASTING_MODEL)
    assert forecasting.score == pytest.approx(0.92 * 0.1)


def test_selection_is_pure():
    selector = StrategySelector()
    task = Task(description="Predecir demanda", kind=TaskKind.GENERAL)
    first = selector.select(task, ["a", "b"], "b")
    second = selector.select(task, ["a", "b"], "b")
    assert first.strategy is second.strategy
    assert [r.score for r in first.ranking] == [r.score for r in second.ranking]


def test_backend_falls_back_to_first_registered():
    selection = StrategySelector().select(Task(description="x"), ["first", "second"], "missing")
    assert selection.backend == "first"


def test_select_without_backends_raises():
    with pytest.raises(ConfigurationError):
        StrategySelector().select(Task(description="x"), [], "gemini")


def test_disabled_selection_uses_first_kind_match():
    selector = StrategySelector(enabled=False)
    task = Task(description="Predecir ventas", kind=TaskKind.CLASSIFICATION)
    assert selector.select(task, ["g"], "g").strategy.tag is StrategyTag.GENERAL_MODEL


def test_disabled_selection_defaults_to_first_entry():
    only_sequence = (
        StrategySpec(
            tag=StrategyTag.SEQUENCE_MODEL,
            base_score=0.85,
            description="seq",
            parameters=MappingProxyType({}),
        ),
    )
    selector = StrategySelector(only_sequence, enabled=False)
    task = Task(description="x", kind=TaskKind.CODE_GENERATION)
    assert selector.select(task, ["g"], "g").strategy.tag is StrategyTag.SEQUENCE_MODEL
