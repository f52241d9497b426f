"""
Tests for the metrics collector and Prometheus export.
"""

import pytest

from ws_fanout.components.metrics.collector import MetricsCollector, generate_prometheus_metrics


class TestMetricsCollector:

    def test_increment(self, metrics):
        metrics.increment("push", "delivered", 3)
        metrics.increment("push", "delivered")
        assert metrics.get_snapshot()["pushes"]["delivered"] == 4

    def test_unknown_group(self, metrics):
        with pytest.raises(KeyError):
            metrics.increment("bogus", "delivered")

    def test_snapshot_is_a_copy(self, metrics):
        snapshot = metrics.get_snapshot()
        snapshot["pushes"]["delivered"] = 99
        assert metrics.get_snapshot()["pushes"]["delivered"] == 0

    def test_reset(self, metrics):
        metrics.increment("event", "received", 5)
        metrics.increment_unrecognized()
        metrics.increment_registry_unavailable()

        metrics.reset()

        snapshot = metrics.get_snapshot()
        assert snapshot["events"]["received"] == 0
        assert snapshot["unrecognized_triggers"] == 0
        assert snapshot["registry_unavailable"] == 0


class TestPrometheusExport:

    def test_counters(self):
        metrics = MetricsCollector()
        metrics.increment("lifecycle", "connects", 2)
        metrics.increment("push", "stale_pruned")

        output = generate_prometheus_metrics(metrics)

        assert "# TYPE fanout_lifecycle_connects_total counter" in output
        assert "fanout_lifecycle_connects_total 2" in output
        assert "fanout_pushes_stale_pruned_total 1" in output
        assert "fanout_unrecognized_triggers_total 0" in output
        assert "fanout_registry_connections" not in output

    def test_registry_gauge(self):
        output = generate_prometheus_metrics(MetricsCollector(), registry_size=7)

        assert "# TYPE fanout_registry_connections gauge" in output
        assert "fanout_registry_connections 7" in output

    def test_custom_prefix(self):
        output = generate_prometheus_metrics(MetricsCollector(), prefix="calls")
        assert "calls_events_received_total 0" in output
