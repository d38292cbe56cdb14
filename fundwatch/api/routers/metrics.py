"""
Prometheus Metrics Endpoint.

GET /metrics — Exposes engine metrics in Prometheus text format.

Includes:
- Monitor counters (ticks, evaluations, triggers, suppressions, errors)
- Dispatch counters, overall and per channel
- Schedule registration counters and store write errors
- Collection sizes and uptime
"""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from fundwatch.api.deps import get_service
from fundwatch.metrics import format_prometheus, get_engine_metrics
from fundwatch.service import NotificationService

router = APIRouter(tags=["observability"])

_start_time = time.time()


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics",
    description="Engine metrics in Prometheus text exposition format.",
)
async def prometheus_metrics(service: NotificationService = Depends(get_service)):
    metrics: dict[str, float | int] = {
        "uptime_seconds": round(time.time() - _start_time, 1),
        "rules_total": len(service.rules),
        "rules_active": len(service.monitor.active_rule_ids),
        "templates_total": len(service.templates),
        "scheduled_notifications_total": len(service.schedules),
        "monitor_running": 1 if service.monitor.running else 0,
    }
    metrics.update(get_engine_metrics())
    return PlainTextResponse(
        content=format_prometheus(metrics),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
