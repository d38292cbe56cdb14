"""
Engine Metrics.

Process-local counters for the monitor, dispatcher and schedule manager.
Exposed in Prometheus text format by the /metrics endpoint.
"""

from collections import Counter

_engine_metrics: Counter = Counter()

_TRACKED = (
    "ticks_total",
    "rules_evaluated_total",
    "rules_triggered_total",
    "rules_suppressed_total",
    "rule_evaluation_errors_total",
    "actions_dispatched_total",
    "actions_failed_total",
    "schedules_registered_total",
    "schedules_cancelled_total",
    "store_write_errors_total",
)


def increment(name: str, amount: int = 1) -> None:
    _engine_metrics[name] += amount


def increment_channel(kind: str, channel: str) -> None:
    """Bump the overall counter and its per-channel twin (e.g. actions_failed_webhook)."""
    _engine_metrics[f"{kind}_total"] += 1
    _engine_metrics[f"{kind}_{channel}"] += 1


def get_engine_metrics() -> dict[str, int]:
    """Get current metrics snapshot (tracked counters always present)."""
    snapshot = {name: 0 for name in _TRACKED}
    snapshot.update(_engine_metrics)
    return snapshot


def reset_engine_metrics() -> None:
    _engine_metrics.clear()


def format_prometheus(metrics: dict[str, float | int], prefix: str = "fundwatch") -> str:
    """Format metrics dict as Prometheus text exposition format."""
    lines: list[str] = []
    for key, value in sorted(metrics.items()):
        safe_key = key.replace(".", "_").replace("-", "_")
        if isinstance(value, (int, float)):
            lines.append(f"{prefix}_{safe_key} {value}")
    return "\n".join(lines) + "\n"
