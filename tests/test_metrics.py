"""
Tests for MetricsCollector — operation counters and latency

Tests verify:
- accepted and rejected operations are counted by mode
- errors are counted by kind
- latency lands in the right bucket
- reset clears everything
"""

import pytest

from taskchain.core.errors import ErrorKind, OperationResult
from taskchain.metrics import LatencyHistogram, MetricsCollector


@pytest.fixture
def metrics():
    return MetricsCollector()


class TestLatencyHistogram:

    @pytest.mark.parametrize("duration,bucket", [
        (0.05, "lt_0_1ms"),
        (0.5, "lt_1ms"),
        (5, "lt_10ms"),
        (50, "lt_100ms"),
        (500, "gt_100ms"),
    ])
    def test_buckets(self, duration, bucket):
        hist = LatencyHistogram()
        hist.record(duration)
        assert hist.buckets[bucket] == 1

    def test_stats(self):
        hist = LatencyHistogram()
        hist.record(1.0)
        hist.record(3.0)
        data = hist.to_dict()
        assert data["count"] == 2
        assert data["avg_ms"] == 2.0
        assert data["min_ms"] == 1.0
        assert data["max_ms"] == 3.0

    def test_empty(self):
        assert LatencyHistogram().to_dict()["min_ms"] == 0


class TestMetricsCollector:

    def test_counts_outcomes(self, metrics):
        metrics.record_operation(OperationResult(mode="start", task_id="T1"), 0.2)
        metrics.record_operation(
            OperationResult.failure("start", ErrorKind.STEP_NOT_FOUND, "T1"), 0.1
        )
        summary = metrics.get_summary()

        assert summary["operations"]["total"] == 2
        assert summary["operations"]["acceptance_rate"] == 50.0
        assert summary["by_mode"] == {"start:ok": 1, "start:error": 1}
        assert summary["errors"] == {"step_not_found": 1, "total": 1}
        assert summary["latency"]["start"]["count"] == 2
        assert summary["latency"]["all"]["count"] == 2

    def test_error_count(self, metrics):
        for _ in range(3):
            metrics.record_operation(
                OperationResult.failure("complete", ErrorKind.MISSING_SUMMARY, "T1"), 0.1
            )
        assert metrics.error_count("missing_summary") == 3
        assert metrics.error_count("chain_not_found") == 0

    def test_chain_counts(self, metrics):
        metrics.set_chain_counts(running=4, finished=2)
        assert metrics.get_summary()["chains"] == {"running": 4, "finished": 2}

    def test_empty_summary(self, metrics):
        summary = metrics.get_summary()
        assert summary["operations"]["total"] == 0
        assert summary["operations"]["acceptance_rate"] == 0.0

    def test_reset(self, metrics):
        metrics.record_operation(OperationResult(mode="finish", task_id="T1"), 0.1)
        metrics.set_chain_counts(1, 1)
        metrics.reset()
        summary = metrics.get_summary()
        assert summary["operations"]["total"] == 0
        assert summary["latency"] == {}
        assert summary["chains"] == {"running": 0, "finished": 0}
