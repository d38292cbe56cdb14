"""
Alert Rule API Endpoints.

GET    /api/v1/rules                  — list alert rules
POST   /api/v1/rules                  — create an alert rule
GET    /api/v1/rules/history          — most recent triggers
GET    /api/v1/rules/{rule_id}        — get a rule
PUT    /api/v1/rules/{rule_id}        — update a rule (partial)
DELETE /api/v1/rules/{rule_id}        — delete a rule
POST   /api/v1/rules/{rule_id}/test   — would the rule fire right now?
"""

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from fundwatch.alerting.schemas import (
    AlertHistoryEntry,
    AlertRule,
    AlertRuleCreate,
    AlertRuleUpdate,
)
from fundwatch.api.deps import get_service
from fundwatch.service import NotificationService

router = APIRouter(prefix="/api/v1/rules", tags=["rules"])


class RuleTestResponse(BaseModel):
    rule_id: str
    would_trigger: bool


@router.get("", response_model=list[AlertRule])
async def list_rules(service: NotificationService = Depends(get_service)):
    return service.list_rules()


@router.post("", response_model=AlertRule, status_code=status.HTTP_201_CREATED)
async def create_rule(
    body: AlertRuleCreate,
    service: NotificationService = Depends(get_service),
):
    """Create a rule; enabled rules join the evaluation pool immediately."""
    return await service.create_rule(body)


@router.get("/history", response_model=list[AlertHistoryEntry])
async def alert_history(
    limit: int = Query(default=50, ge=1, le=500),
    service: NotificationService = Depends(get_service),
):
    return service.get_alert_history(limit=limit)


@router.get("/{rule_id}", response_model=AlertRule)
async def get_rule(rule_id: str, service: NotificationService = Depends(get_service)):
    return service.get_rule(rule_id)


@router.put("/{rule_id}", response_model=AlertRule)
async def update_rule(
    rule_id: str,
    body: AlertRuleUpdate,
    service: NotificationService = Depends(get_service),
):
    return await service.update_rule(rule_id, body)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: str, service: NotificationService = Depends(get_service)):
    await service.delete_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{rule_id}/test", response_model=RuleTestResponse)
async def test_rule(rule_id: str, service: NotificationService = Depends(get_service)):
    """Evaluate the rule now without firing it."""
    return RuleTestResponse(rule_id=rule_id, would_trigger=await service.test_rule(rule_id))
