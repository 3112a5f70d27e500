"""Performance monitor: rolling backend latency, error rate and alerts."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

WINDOW_SIZE = 100


@dataclass
class AlertThresholds:
    response_time_ms: int = 5_000
    error_rate: float = 0.05


@dataclass
class PerformanceMetrics:
    success_rate: float = 1.0
    average_response_time_ms: int = 0
    total_requests: int = 0
    failed_requests: int = 0
    uptime_seconds: int = 0


@dataclass
class PerformanceAlert:
    severity: str  # low | medium | high | critical
    message: str
    metric_name: str
    current_value: float
    threshold: float


@dataclass
class PerformanceReport:
    timestamp: str
    metrics: PerformanceMetrics
    alerts: list[PerformanceAlert] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class PerformanceMonitor:
    """Track generate-call latency over the last ``WINDOW_SIZE`` requests."""

    def __init__(self, thresholds: AlertThresholds | None = None) -> None:
        self.thresholds = thresholds or AlertThresholds()
        self._started = time.monotonic()
        self._lock = threading.Lock()
        self._durations: deque[float] = deque(maxlen=WINDOW_SIZE)
        self._total = 0
        self._failed = 0

    def record_request(self, duration_seconds: float, success: bool) -> None:
        with self._lock:
            self._total += 1
            if not success:
                self._failed += 1
            self._durations.append(duration_seconds)

    def metrics(self) -> PerformanceMetrics:
        with self._lock:
            avg_ms = (
                int(sum(self._durations) * 1000 / len(self._durations)) if self._durations else 0
            )
            return PerformanceMetrics(
                success_rate=1.0 - self._failed / self._total if self._total else 1.0,
                average_response_time_ms=avg_ms,
                total_requests=self._total,
                failed_requests=self._failed,
                uptime_seconds=int(time.monotonic() - self._started),
            )

    def report(self) -> PerformanceReport:
        metrics = self.metrics()
        alerts = self._check_alerts(metrics)
        return PerformanceReport(
            timestamp=datetime.now(UTC).isoformat(),
            metrics=metrics,
            alerts=alerts,
            recommendations=_recommendations(alerts),
        )

    def _check_alerts(self, metrics: PerformanceMetrics) -> list[PerformanceAlert]:
        alerts: list[PerformanceAlert] = []
        if metrics.average_response_time_ms > self.thresholds.response_time_ms:
            alerts.append(
                PerformanceAlert(
                    severity="high",
                    message="Backend response time is elevated",
                    metric_name="response_time",
                    current_value=float(metrics.average_response_time_ms),
                    threshold=float(self.thresholds.response_time_ms),
                )
            )
        error_rate = 1.0 - metrics.success_rate
        if error_rate > self.thresholds.error_rate:
            alerts.append(
                PerformanceAlert(
                    severity="critical",
                    message="Backend error rate is elevated",
                    metric_name="error_rate",
                    current_value=error_rate,
                    threshold=self.thresholds.error_rate,
                )
            )
        return alerts


def _recommendations(alerts: list[PerformanceAlert]) -> list[str]:
    recommendations: list[str] = []
    for alert in alerts:
        if alert.metric_name == "response_time":
            recommendations.append("Use the fast model profile for simple tasks")
            recommendations.append("Lower max_concurrent_tasks to reduce backend contention")
        elif alert.metric_name == "error_rate":
            recommendations.append("Check backend credentials and quotas with `enjambre health`")
            recommendations.append("Raise timeout_seconds if failures are timeouts")
    return recommendations
