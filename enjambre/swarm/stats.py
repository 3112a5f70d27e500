"""Stats aggregator: outcome telemetry and learned strategy weights."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable

from enjambre.swarm.types import Stats, StrategyTag

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.2
DEFAULT_WEIGHT_BOUNDS = (0.1, 2.0)
INITIAL_WEIGHT = 1.0


class StatsAggregator:
    """Accumulate task outcomes and adapt per-strategy weights.

    This is the only cross-task mutable state in the swarm; every read and
    write goes through ``self._lock`` so concurrent completions never lose
    an update.

    Weight update (EWMA of the success indicator, clamped)::

        w = clamp(alpha * success + (1 - alpha) * w, min_weight, max_weight)
    """

    def __init__(
        self,
        strategies: Iterable[StrategyTag] = tuple(StrategyTag),
        *,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        min_weight: float = DEFAULT_WEIGHT_BOUNDS[0],
        max_weight: float = DEFAULT_WEIGHT_BOUNDS[1],
        adaptive: bool = True,
        session_id: str | None = None,
    ) -> None:
        self.learning_rate = learning_rate
        self.min_weight = min_weight
        self.max_weight = max_weight
        self.adaptive = adaptive
        self.session_id = session_id or str(uuid.uuid4())

        self._lock = threading.Lock()
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._cancelled = 0
        self._quality_mean = 0.0
        self._weights: dict[StrategyTag, float] = {
            tag: self._clamp(INITIAL_WEIGHT) for tag in strategies
        }
        self._strategy_successes: dict[StrategyTag, int] = {tag: 0 for tag in self._weights}
        self._strategy_totals: dict[StrategyTag, int] = {tag: 0 for tag in self._weights}

    def _clamp(self, value: float) -> float:
        return min(self.max_weight, max(self.min_weight, value))

    def record(self, strategy: StrategyTag | None, success: bool, quality: float) -> None:
        """Record one terminal (succeeded/failed) task outcome."""
        with self._lock:
            self._total += 1
            if success:
                self._successful += 1
                # Incremental mean over successful tasks only
                self._quality_mean += (quality - self._quality_mean) / self._successful
            else:
                self._failed += 1

            if strategy is None:
                return
            self._strategy_totals[strategy] = self._strategy_totals.get(strategy, 0) + 1
            if success:
                self._strategy_successes[strategy] = self._strategy_successes.get(strategy, 0) + 1

            if self.adaptive:
                old = self._weights.get(strategy, INITIAL_WEIGHT)
                indicator = 1.0 if success else 0.0
                new = self._clamp(self.learning_rate * indicator + (1.0 - self.learning_rate) * old)
                self._weights[strategy] = new
                logger.debug("Weight for %s: %.3f -> %.3f", strategy, old, new)

    def record_cancelled(self) -> None:
        """Count an externally aborted task. Weights are left alone."""
        with self._lock:
            self._total += 1
            self._cancelled += 1

    def weight(self, strategy: StrategyTag) -> float:
        with self._lock:
            return self._weights.get(strategy, self._clamp(INITIAL_WEIGHT))

    @property
    def success_rate(self) -> float:
        with self._lock:
            return self._success_rate()

    def _success_rate(self) -> float:
        return self._successful / self._total if self._total else 0.0

    def snapshot(self, *, active_adapters: int = 0, active_tasks: int = 0) -> Stats:
        """Return a consistent copy of all counters."""
        with self._lock:
            return Stats(
                session_id=self.session_id,
                total_tasks=self._total,
                successful_tasks=self._successful,
                failed_tasks=self._failed,
                cancelled_tasks=self._cancelled,
                success_rate=self._success_rate(),
                average_quality=self._quality_mean if self._successful else 0.0,
                strategy_successes={str(k): v for k, v in self._strategy_successes.items()},
                strategy_totals={str(k): v for k, v in self._strategy_totals.items()},
                learned_weights={str(k): v for k, v in self._weights.items()},
                active_adapters=active_adapters,
                active_tasks=active_tasks,
            )
