"""
Notification Template API Endpoints.

GET    /api/v1/templates                 — list templates
POST   /api/v1/templates                 — create a template
GET    /api/v1/templates/{template_id}   — get a template
PUT    /api/v1/templates/{template_id}   — update a template
DELETE /api/v1/templates/{template_id}   — delete (referencing rules fall back)
"""

from fastapi import APIRouter, Depends, Response, status

from fundwatch.alerting.schemas import NotificationTemplate, TemplateCreate, TemplateUpdate
from fundwatch.api.deps import get_service
from fundwatch.service import NotificationService

router = APIRouter(prefix="/api/v1/templates", tags=["templates"])


@router.get("", response_model=list[NotificationTemplate])
async def list_templates(service: NotificationService = Depends(get_service)):
    return service.list_templates()


@router.post("", response_model=NotificationTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(
    body: TemplateCreate,
    service: NotificationService = Depends(get_service),
):
    return await service.create_template(body)


@router.get("/{template_id}", response_model=NotificationTemplate)
async def get_template(template_id: str, service: NotificationService = Depends(get_service)):
    return service.get_template(template_id)


@router.put("/{template_id}", response_model=NotificationTemplate)
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    service: NotificationService = Depends(get_service),
):
    return await service.update_template(template_id, body)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template_id: str, service: NotificationService = Depends(get_service)):
    await service.delete_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
