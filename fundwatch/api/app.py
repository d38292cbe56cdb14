"""
FundWatch — FastAPI Application.

Run: uvicorn fundwatch.api.app:app --host 0.0.0.0 --port 8002

  - /api/v1/rules       ← alert rule CRUD, test, history
  - /api/v1/templates   ← notification template CRUD
  - /api/v1/schedules   ← scheduled notification CRUD
  - GET /health         ← liveness probe
  - GET /metrics        ← Prometheus metrics
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fundwatch import __version__
from fundwatch.api.routers.metrics import router as metrics_router
from fundwatch.api.routers.rules import router as rules_router
from fundwatch.api.routers.schedules import router as schedules_router
from fundwatch.api.routers.templates import router as templates_router
from fundwatch.config import Settings, settings as default_settings
from fundwatch.exceptions import FundWatchError
from fundwatch.logging_config import configure_logging
from fundwatch.service import NotificationService, build_service

logger = structlog.get_logger(__name__)


def create_app(
    service: Optional[NotificationService] = None,
    settings: Settings = default_settings,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    When no service is given one is built from `settings` at start-up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan — startup and shutdown."""
        configure_logging(settings)
        logger.info("fundwatch_api_starting", version=__version__)
        if app.state.service is None:
            app.state.service = build_service(settings)
        await app.state.service.initialize()
        yield
        await app.state.service.shutdown()
        logger.info("fundwatch_api_shutdown")

    app = FastAPI(
        title="FundWatch",
        description="Contribution alerting and recurring notification engine.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness probe"},
            {"name": "rules", "description": "Alert rules, test and history"},
            {"name": "templates", "description": "Notification templates"},
            {"name": "schedules", "description": "Recurring scheduled notifications"},
            {"name": "observability", "description": "Prometheus metrics"},
        ],
    )
    app.state.service = service

    # ── Error handling ────────────────────────────────────────────────

    @app.exception_handler(FundWatchError)
    async def fundwatch_error_handler(request: Request, exc: FundWatchError):
        logger.warning(
            "request_failed",
            path=request.url.path,
            method=request.method,
            error_code=exc.code.value,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        logger.error(
            "unhandled_exception",
            error_id=error_id,
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        body: dict = {
            "error": "An internal error occurred. Please try again later.",
            "error_id": error_id,
            "status": 500,
        }
        if settings.debug:
            body["debug_hint"] = type(exc).__name__
        return JSONResponse(status_code=500, content=body)

    # ── Routes ────────────────────────────────────────────────────────

    app.include_router(rules_router)
    app.include_router(templates_router)
    app.include_router(schedules_router)
    app.include_router(metrics_router)

    @app.get("/health", tags=["health"])
    async def health(request: Request):
        """Liveness probe — does not check the activity source or channels."""
        service = request.app.state.service
        return {
            "status": "ok",
            "version": __version__,
            "service": "fundwatch",
            "initialized": bool(service and service.initialized),
            "monitor_running": bool(service and service.monitor.running),
        }

    return app


app = create_app()
