"""
Activity Client — HTTP reader for contribution records.

Fetches recent contributions from the fund's contributions API and maps
them to ContributionRecord. Both snake_case and camelCase field names are
accepted (the mobile app stores camelCase).

Unlike a display client this one does NOT degrade to an empty list: an
empty window is meaningful to the evaluator (time_since_last fires), so
transport failures raise and the rule is skipped for the tick.
"""

from datetime import timedelta
from typing import Any, Optional

import httpx
import structlog

from fundwatch.alerting.schemas import ContributionRecord
from fundwatch.clock import Clock, system_clock

logger = structlog.get_logger(__name__)


def _extract_contributions(body: dict | list) -> list[dict]:
    """
    Extract the record list from the response.

    Flat list:  [...]
    Envelope:   {"data": [...]} or {"contributions": [...]}
    """
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "contributions"):
            value = body.get(key)
            if isinstance(value, list):
                return value
    return []


def parse_contribution(raw: dict[str, Any]) -> ContributionRecord:
    """Map a raw API dict to a ContributionRecord."""
    return ContributionRecord(
        id=str(raw.get("id", "")),
        member_id=str(raw.get("member_id", raw.get("memberId", ""))),
        member_name=raw.get("member_name", raw.get("memberName", "")) or "",
        amount=float(raw.get("amount", 0.0)),
        platform=raw.get("platform", "") or "",
        date=raw.get("date", raw.get("created_at", raw.get("createdAt"))),
    )


class HttpActivityReader:
    """GET {base_url}/api/v1/contributions?since=<ISO-8601>."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Clock = system_clock,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._clock = clock

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {}
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=headers,
            )
        return self._client

    async def get_recent_contributions(self, hours: float) -> list[ContributionRecord]:
        since = self._clock() - timedelta(hours=hours)
        resp = await self._http().get(
            f"{self.base_url}/api/v1/contributions",
            params={"since": since.isoformat()},
        )
        resp.raise_for_status()

        records: list[ContributionRecord] = []
        for raw in _extract_contributions(resp.json()):
            try:
                record = parse_contribution(raw)
            except Exception as parse_err:
                logger.debug(
                    "contribution_parse_skip",
                    contribution_id=raw.get("id", "?") if isinstance(raw, dict) else "?",
                    error=str(parse_err),
                )
                continue
            # The API filter is advisory; enforce the window locally.
            if record.date >= since:
                records.append(record)

        logger.debug("contributions_fetched", hours=hours, count=len(records))
        return records

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
