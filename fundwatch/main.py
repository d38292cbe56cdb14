"""
Engine Entry Point — runs the monitor and scheduled notifications headless.

Usage:
    python -m fundwatch.main

This does NOT run a web server (see fundwatch.api.app for the API). It
loads rules, templates and schedules, starts the rule monitor and keeps
scheduled notifications registered until SIGINT/SIGTERM.
"""

import asyncio
import signal

import structlog

from fundwatch import __version__
from fundwatch.config import settings
from fundwatch.logging_config import configure_logging
from fundwatch.service import build_service

logger = structlog.get_logger(__name__)


async def main():
    """Initialize and run the engine."""
    configure_logging(settings)
    logger.info("fundwatch_starting", version=__version__, store_backend=settings.store_backend)

    service = build_service(settings)
    await service.initialize(start_monitor=True)

    # Graceful shutdown handling
    stop_event = asyncio.Event()

    def _handle_signal(signum, frame):
        logger.info("shutdown_signal_received", signal=signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    logger.info(
        "fundwatch_running",
        interval_seconds=settings.monitor_interval_seconds,
        msg="Monitoring rules... Ctrl+C to stop.",
    )

    await stop_event.wait()

    await service.shutdown()
    logger.info("fundwatch_shutdown_complete")


def run():
    """Console-script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


def serve_api():
    """Console-script entry point for the HTTP API (monitor runs inside it)."""
    import uvicorn

    configure_logging(settings)
    uvicorn.run(
        "fundwatch.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
