"""
Tests for engine metrics and Prometheus formatting.
"""

from fundwatch import metrics


class TestEngineMetrics:
    def test_tracked_counters_always_present(self):
        snapshot = metrics.get_engine_metrics()
        assert snapshot["rules_triggered_total"] == 0
        assert snapshot["actions_failed_total"] == 0

    def test_channel_counters(self):
        metrics.increment_channel("actions_failed", "webhook")
        metrics.increment_channel("actions_failed", "push")
        snapshot = metrics.get_engine_metrics()
        assert snapshot["actions_failed_total"] == 2
        assert snapshot["actions_failed_webhook"] == 1

    def test_format_prometheus(self):
        text = metrics.format_prometheus({"b.metric": 2, "a-metric": 1.5, "label": "x"})
        assert text == "fundwatch_a_metric 1.5\nfundwatch_b_metric 2\n"
