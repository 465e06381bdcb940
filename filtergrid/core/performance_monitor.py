"""Performance monitor for filter operations (load, index build, evaluate, value counts)"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PerformanceMetric:
    """A single timed operation"""
    operation: str
    duration_ms: float
    row_count: int
    details: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class OperationStats:
    """Summary for one operation type"""
    operation: str
    count: int = 0
    average_duration_ms: float = 0.0
    min_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    average_row_count: int = 0


class FilterPerformanceMonitor:
    """Keeps the most recent metrics and warns about slow operations"""

    def __init__(self, max_metrics: int = 100, slow_operation_ms: float = 100):
        self._metrics: Deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self.slow_operation_ms = slow_operation_ms

    def record(self, operation: str, duration_ms: float, row_count: int,
               details: Optional[str] = None) -> PerformanceMetric:
        metric = PerformanceMetric(operation, duration_ms, row_count, details)
        self._metrics.append(metric)
        if duration_ms > self.slow_operation_ms:
            logger.warning(f"[PERFORMANCE WARNING] {operation} took {duration_ms:.2f}ms "
                           f"(target: <{self.slow_operation_ms:g}ms) - {details or ''}")
        return metric

    def get_stats(self, operation: str) -> OperationStats:
        matching = [m for m in self._metrics if m.operation == operation]
        if not matching:
            return OperationStats(operation=operation)
        durations = [m.duration_ms for m in matching]
        return OperationStats(
            operation=operation,
            count=len(matching),
            average_duration_ms=sum(durations) / len(durations),
            min_duration_ms=min(durations),
            max_duration_ms=max(durations),
            average_row_count=int(sum(m.row_count for m in matching) / len(matching))
        )

    def recent(self, count: int = 10) -> List[PerformanceMetric]:
        return list(self._metrics)[-count:]

    def clear(self):
        self._metrics.clear()

    def __len__(self) -> int:
        return len(self._metrics)

    def report(self) -> str:
        """Plain-text report grouped by operation"""
        if not self._metrics:
            return "No performance metrics recorded."

        lines = ["=== Filter Performance Report ===", f"Total operations: {len(self._metrics)}", ""]
        operations = list(dict.fromkeys(m.operation for m in self._metrics))
        for operation in operations:
            stats = self.get_stats(operation)
            lines.append(f"Operation: {operation}")
            lines.append(f"  Count: {stats.count}")
            lines.append(f"  Average: {stats.average_duration_ms:.2f}ms")
            lines.append(f"  Min: {stats.min_duration_ms:.2f}ms")
            lines.append(f"  Max: {stats.max_duration_ms:.2f}ms")
            lines.append(f"  Avg Rows: {stats.average_row_count:,}")
            lines.append("")
        return "\n".join(lines)
