"""
Tests for the HTTP API.

Covers:
- Rule CRUD, test endpoint and history
- Template and schedule CRUD
- Domain errors mapped to JSON error responses (404 / 422)
- /health and /metrics
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fundwatch.api.app import create_app


@pytest_asyncio.fixture
async def client(service, test_settings):
    """Async test client bound to the fixture service (lifespan not run)."""
    app = create_app(service=service, settings=test_settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


RULE_BODY = {
    "name": "Big Day",
    "kind": "amount_threshold",
    "conditions": [{"field": "total_amount", "operator": "greater_than", "value": 100}],
    "actions": [
        {"channel": "push", "template_id": "t"},
        {"channel": "webhook", "template_id": "t", "webhook_url": "https://hooks.example.com/x"},
    ],
    "cooldown_minutes": 30,
    "priority": "high",
}


# ── Rules ─────────────────────────────────────────────────────────────


class TestRulesApi:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client):
        resp = await client.post("/api/v1/rules", json=RULE_BODY)
        assert resp.status_code == 201
        rule = resp.json()
        assert rule["id"].startswith("rule_")
        assert rule["actions"][1]["webhook_url"] == "https://hooks.example.com/x"

        listed = (await client.get("/api/v1/rules")).json()
        assert [r["id"] for r in listed] == [rule["id"]]

    @pytest.mark.asyncio
    async def test_invalid_rule_422(self, client):
        body = {**RULE_BODY, "conditions": [{"field": "total_amount", "operator": "between", "value": 1}]}
        resp = await client.post("/api/v1/rules", json=body)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_update_and_get(self, client):
        rule_id = (await client.post("/api/v1/rules", json=RULE_BODY)).json()["id"]
        resp = await client.put(f"/api/v1/rules/{rule_id}", json={"enabled": False})
        assert resp.status_code == 200
        assert resp.json()["enabled"] is False
        assert (await client.get(f"/api/v1/rules/{rule_id}")).json()["cooldown_minutes"] == 30

    @pytest.mark.asyncio
    async def test_unknown_rule_404(self, client):
        resp = await client.put("/api/v1/rules/rule_missing", json={"name": "x"})
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"]["code"] == "E4000"
        assert body["error"]["details"]["identifier"] == "rule_missing"

    @pytest.mark.asyncio
    async def test_delete(self, client):
        rule_id = (await client.post("/api/v1/rules", json=RULE_BODY)).json()["id"]
        assert (await client.delete(f"/api/v1/rules/{rule_id}")).status_code == 204
        assert (await client.delete(f"/api/v1/rules/{rule_id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_test_endpoint(self, client, reader):
        rule_id = (await client.post("/api/v1/rules", json=RULE_BODY)).json()["id"]
        resp = await client.post(f"/api/v1/rules/{rule_id}/test")
        assert resp.json() == {"rule_id": rule_id, "would_trigger": False}

        reader.add(150)
        resp = await client.post(f"/api/v1/rules/{rule_id}/test")
        assert resp.json()["would_trigger"] is True

    @pytest.mark.asyncio
    async def test_history(self, client, service):
        rule_id = (await client.post("/api/v1/rules", json={"name": "Always"})).json()["id"]
        await service.monitor.tick()
        history = (await client.get("/api/v1/rules/history")).json()
        assert history[0]["rule_id"] == rule_id
        assert history[0]["rule_name"] == "Always"


# ── Templates & schedules ─────────────────────────────────────────────


class TestTemplatesApi:
    @pytest.mark.asyncio
    async def test_crud(self, client):
        resp = await client.post("/api/v1/templates", json={"name": "T", "body": "Total ${total_amount}"})
        assert resp.status_code == 201
        template_id = resp.json()["id"]

        resp = await client.put(f"/api/v1/templates/{template_id}", json={"category": "report"})
        assert resp.json()["category"] == "report"

        assert (await client.delete(f"/api/v1/templates/{template_id}")).status_code == 204
        resp = await client.get(f"/api/v1/templates/{template_id}")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "E4001"


class TestSchedulesApi:
    @pytest.mark.asyncio
    async def test_create_computes_next(self, client):
        resp = await client.post("/api/v1/schedules", json={
            "type": "weekly_summary",
            "schedule": {"type": "weekly", "time": "07:00", "days": [1, 3, 5]},
            "template_id": "t",
        })
        assert resp.status_code == 201
        assert resp.json()["next_scheduled"].startswith("2024-01-03T07:00:00")

    @pytest.mark.asyncio
    async def test_unknown_schedule_404(self, client):
        resp = await client.delete("/api/v1/schedules/scheduled_missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "E4002"


# ── Health & metrics ──────────────────────────────────────────────────


class TestObservability:
    @pytest.mark.asyncio
    async def test_health(self, client):
        body = (await client.get("/health")).json()
        assert body["status"] == "ok"
        assert body["initialized"] is True
        assert body["monitor_running"] is False

    @pytest.mark.asyncio
    async def test_metrics(self, client, service):
        await client.post("/api/v1/rules", json={"name": "Always"})
        await service.monitor.tick()
        resp = await client.get("/metrics")
        assert resp.status_code == 200
        assert "fundwatch_rules_triggered_total 1" in resp.text
        assert "fundwatch_rules_active 1" in resp.text
