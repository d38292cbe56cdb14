"""
FastAPI dependencies for the API routes.
"""

from fastapi import Request

from fundwatch.service import NotificationService


def get_service(request: Request) -> NotificationService:
    """The NotificationService bound to the running app."""
    service = request.app.state.service
    if service is None:
        raise RuntimeError("NotificationService not initialized")
    return service
