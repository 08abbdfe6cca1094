import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel

from app.core.clock import utcnow

logger = logging.getLogger(__name__)

SLOW_OPERATION_MS = 1000


@dataclass
class PerformanceMetric:
    operation_name: str
    elapsed_ms: float
    timestamp: datetime


class OperationStats(BaseModel):
    operation_name: str
    count: int
    average_ms: float
    min_ms: float
    max_ms: float


class PerformanceStatistics(BaseModel):
    total_operations: int = 0
    operation_stats: list[OperationStats] = []
    slowest_operations: list[OperationStats] = []


class PerformanceMonitor:
    """Keeps the most recent operation timings in memory."""

    def __init__(self, max_metrics: int = 1000):
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._lock = threading.Lock()

    @contextmanager
    def measure(self, operation_name: str):
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.record(operation_name, elapsed_ms)

    def record(self, operation_name: str, elapsed_ms: float) -> None:
        with self._lock:
            self._metrics.append(PerformanceMetric(operation_name, elapsed_ms, utcnow()))

        if elapsed_ms > SLOW_OPERATION_MS:
            logger.warning(f"⚠️ Slow operation detected: {operation_name} took {elapsed_ms:.0f}ms")
        else:
            logger.debug(f"Operation {operation_name} completed in {elapsed_ms:.1f}ms")

    def get_statistics(self) -> PerformanceStatistics:
        with self._lock:
            metrics = list(self._metrics)

        if not metrics:
            return PerformanceStatistics()

        grouped: dict[str, list[float]] = {}
        for metric in metrics:
            grouped.setdefault(metric.operation_name, []).append(metric.elapsed_ms)

        stats = [
            OperationStats(
                operation_name=name,
                count=len(values),
                average_ms=round(sum(values) / len(values), 2),
                min_ms=round(min(values), 2),
                max_ms=round(max(values), 2),
            )
            for name, values in grouped.items()
        ]
        stats.sort(key=lambda s: s.average_ms, reverse=True)

        return PerformanceStatistics(
            total_operations=len(metrics),
            operation_stats=stats,
            slowest_operations=stats[:10],
        )
