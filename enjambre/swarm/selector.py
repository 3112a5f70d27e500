"""Strategy selection: rank the catalog for a task and pick a backend."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from enjambre.errors import ConfigurationError
from enjambre.swarm.strategies import DEFAULT_CATALOG, StrategySpec
from enjambre.swarm.types import StrategyTag, Task

logger = logging.getLogger(__name__)

FULL_AFFINITY = 1.0


@dataclass
class ScoredStrategy:
    spec: StrategySpec
    score: float
    affinity: float
    weight: float


@dataclass
class Selection:
    """Outcome of the Analyze phase."""

    strategy: StrategySpec
    backend: str
    alternates: list[StrategySpec] = field(default_factory=list)
    ranking: list[ScoredStrategy] = field(default_factory=list)


class StrategySelector:
    """Score catalog entries as ``base_score x learned_weight x affinity``.

    ``weight_of`` supplies the learned multiplier for a tag (normally
    :meth:`StatsAggregator.weight`); without it every weight is 1.0.
    Ties keep catalog declaration order.
    """

    def __init__(
        self,
        catalog: Sequence[StrategySpec] = DEFAULT_CATALOG,
        *,
        weight_of: Callable[[StrategyTag], float] | None = None,
        fallback_affinity: float = 0.5,
        enabled: bool = True,
    ) -> None:
        if not catalog:
            raise ConfigurationError("Strategy catalog is empty")
        self.catalog: tuple[StrategySpec, ...] = tuple(catalog)
        self._weight_of = weight_of or (lambda _tag: 1.0)
        self.fallback_affinity = fallback_affinity
        self.enabled = enabled

    def rank(self, task: Task) -> list[ScoredStrategy]:
        """Score every catalog entry, best first."""
        scored: list[ScoredStrategy] = []
        for spec in self.catalog:
            if spec.matches(task.kind, task.description):
                affinity = FULL_AFFINITY
            else:
                affinity = self.fallback_affinity
            weight = self._weight_of(spec.tag)
            scored.append(
                ScoredStrategy(
                    spec=spec,
                    score=spec.base_score * weight * affinity,
                    affinity=affinity,
                    weight=weight,
                )
            )
        # sorted() is stable, so equal scores stay in catalog order
        return sorted(scored, key=lambda s: s.score, reverse=True)

    def select(self, task: Task, backends: Sequence[str], default_backend: str) -> Selection:
        """Pick exactly one strategy plus a ranked shortlist of alternates."""
        if not backends:
            raise ConfigurationError("No backends registered")
        backend = default_backend if default_backend in backends else backends[0]

        if not self.enabled:
            chosen = next(
                (spec for spec in self.catalog if task.kind.base_kind in spec.kinds),
                self.catalog[0],
            )
            alternates = [spec for spec in self.catalog if spec is not chosen]
            return Selection(strategy=chosen, backend=backend, alternates=alternates)

        ranking = self.rank(task)
        best = ranking[0]
        logger.info(
            "Selected strategy %s (score=%.3f, affinity=%.1f, weight=%.2f) on backend %s",
            best.spec.tag,
            best.score,
            best.affinity,
            best.weight,
            backend,
        )
        return Selection(
            strategy=best.spec,
            backend=backend,
            alternates=[s.spec for s in ranking[1:]],
            ranking=ranking,
        )
