"""
MetricsCollector — Observability for chain operations

Collects and exposes metrics:
- Operation counters by mode and outcome
- Error counters by kind
- Operation latency histograms by mode
- Chain gauges (running / finished)

Design: every operation the engine runs is recorded, accepted or not.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from .core.errors import OperationResult


@dataclass
class LatencyHistogram:
    """Simple histogram for latency tracking."""
    count: int = 0
    sum_ms: float = 0.0
    min_ms: float = float('inf')
    max_ms: float = 0.0

    # Operations are in-memory; buckets stay in the sub-millisecond range
    buckets: Dict[str, int] = field(default_factory=lambda: {
        "lt_0_1ms": 0,
        "lt_1ms": 0,
        "lt_10ms": 0,
        "lt_100ms": 0,
        "gt_100ms": 0
    })

    def record(self, duration_ms: float) -> None:
        """Record a latency observation."""
        self.count += 1
        self.sum_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

        if duration_ms < 0.1:
            self.buckets["lt_0_1ms"] += 1
        elif duration_ms < 1:
            self.buckets["lt_1ms"] += 1
        elif duration_ms < 10:
            self.buckets["lt_10ms"] += 1
        elif duration_ms < 100:
            self.buckets["lt_100ms"] += 1
        else:
            self.buckets["gt_100ms"] += 1

    @property
    def avg_ms(self) -> float:
        if self.count == 0:
            return 0.0
        return self.sum_ms / self.count

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 4),
            "min_ms": round(self.min_ms, 4) if self.min_ms != float('inf') else 0,
            "max_ms": round(self.max_ms, 4),
            "buckets": self.buckets.copy()
        }


@dataclass
class CounterMetric:
    """Simple counter metric."""
    value: int = 0

    def inc(self, amount: int = 1) -> None:
        self.value += amount


class MetricsCollector:
    """
    Collects metrics for chain operations.

    Thread-safe. All metrics operations are atomic.

    Metrics exposed:
    - operations: Counter by "mode:ok" / "mode:error"
    - errors: Counter by error kind
    - latency: Histogram by mode
    - chains: running / finished gauges, set from the store
    """

    def __init__(self):
        self._lock = threading.Lock()

        self._operations: Dict[str, CounterMetric] = defaultdict(CounterMetric)
        self._errors: Dict[str, CounterMetric] = defaultdict(CounterMetric)
        self._latency: Dict[str, LatencyHistogram] = defaultdict(LatencyHistogram)
        self._chains: Dict[str, int] = {"running": 0, "finished": 0}

        self._start_time = datetime.now(timezone.utc)

    def record_operation(self, result: OperationResult, duration_ms: float) -> None:
        """Record one engine operation and its outcome."""
        with self._lock:
            outcome = "ok" if result.ok else "error"
            self._operations[f"{result.mode}:{outcome}"].inc()
            self._operations[f"total:{outcome}"].inc()

            self._latency[result.mode].record(duration_ms)
            self._latency["all"].record(duration_ms)

            if result.error is not None:
                self._errors[result.error.kind.value].inc()
                self._errors["total"].inc()

    def set_chain_counts(self, running: int, finished: int) -> None:
        with self._lock:
            self._chains = {"running": running, "finished": finished}

    def error_count(self, kind: str) -> int:
        with self._lock:
            metric = self._errors.get(kind)
            return metric.value if metric else 0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

            accepted = self._operations.get("total:ok", CounterMetric()).value
            rejected = self._operations.get("total:error", CounterMetric()).value
            total = accepted + rejected

            return {
                "uptime_seconds": round(uptime, 2),
                "operations": {
                    "total": total,
                    "accepted": accepted,
                    "rejected": rejected,
                    "acceptance_rate": round(accepted / max(total, 1) * 100, 1),
                },
                "by_mode": {
                    k: c.value for k, c in self._operations.items()
                    if not k.startswith("total:")
                },
                "errors": {k: c.value for k, c in self._errors.items()},
                "latency": {
                    mode: hist.to_dict()
                    for mode, hist in self._latency.items()
                },
                "chains": dict(self._chains),
            }

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._operations.clear()
            self._errors.clear()
            self._latency.clear()
            self._chains = {"running": 0, "finished": 0}
            self._start_time = datetime.now(timezone.utc)
