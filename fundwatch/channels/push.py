"""
Expo Push Sender — delivers push notifications to registered devices.
"""

from typing import Any, Optional

import httpx
import structlog

from fundwatch.exceptions import DispatchError

logger = structlog.get_logger(__name__)


class ExpoPushSender:
    """
    Sends one push message per registered Expo push token.

    The Expo API answers 200 with per-ticket statuses; any ticket with
    status "error" fails the send.
    """

    def __init__(
        self,
        tokens: list[str],
        url: str = "https://exp.host/--/api/v2/push/send",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._tokens = tokens
        self._url = url
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(15.0))
        return self._client

    async def send(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        if not self._tokens:
            raise DispatchError("push", "No push tokens registered")

        messages = [
            {"to": token, "title": title, "body": body, "data": data or {}, "sound": "default"}
            for token in self._tokens
        ]
        try:
            response = await self._http().post(
                self._url,
                json=messages,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise DispatchError("push", str(e)) from e

        if not response.is_success:
            raise DispatchError("push", f"HTTP {response.status_code}")

        tickets = response.json().get("data", [])
        errors = [t for t in tickets if t.get("status") == "error"]
        if errors:
            logger.warning("push_tickets_failed", failed=len(errors), total=len(tickets))
            raise DispatchError("push", errors[0].get("message", "push ticket error"))

        logger.info("push_sent", title=title, devices=len(self._tokens))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
