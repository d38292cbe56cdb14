"""
Scheduled Notification API Endpoints.

GET    /api/v1/schedules                     — list scheduled notifications
POST   /api/v1/schedules                     — create (computes next_scheduled)
GET    /api/v1/schedules/{notification_id}   — get one
PUT    /api/v1/schedules/{notification_id}   — update (re-registers on schedule change)
DELETE /api/v1/schedules/{notification_id}   — cancel and delete
"""

from fastapi import APIRouter, Depends, Response, status

from fundwatch.alerting.schemas import (
    ScheduledNotification,
    ScheduledNotificationCreate,
    ScheduledNotificationUpdate,
)
from fundwatch.api.deps import get_service
from fundwatch.service import NotificationService

router = APIRouter(prefix="/api/v1/schedules", tags=["schedules"])


@router.get("", response_model=list[ScheduledNotification])
async def list_schedules(service: NotificationService = Depends(get_service)):
    return service.list_schedules()


@router.post("", response_model=ScheduledNotification, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    body: ScheduledNotificationCreate,
    service: NotificationService = Depends(get_service),
):
    return await service.create_schedule(body)


@router.get("/{notification_id}", response_model=ScheduledNotification)
async def get_schedule(notification_id: str, service: NotificationService = Depends(get_service)):
    return service.get_schedule(notification_id)


@router.put("/{notification_id}", response_model=ScheduledNotification)
async def update_schedule(
    notification_id: str,
    body: ScheduledNotificationUpdate,
    service: NotificationService = Depends(get_service),
):
    return await service.update_schedule(notification_id, body)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(notification_id: str, service: NotificationService = Depends(get_service)):
    await service.delete_schedule(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
