"""
Webhook channel — POST a JSON payload to a configured URL.
"""

from typing import Any, Optional

import httpx
import structlog

from fundwatch.exceptions import DispatchError

logger = structlog.get_logger(__name__)


class HttpWebhookPoster:
    """
    Posts JSON with `Content-Type: application/json`.

    No timeout is applied unless one is configured. Any non-2xx response
    raises DispatchError.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    async def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def post(self, url: str, payload: dict[str, Any]) -> None:
        client = await self._http()
        try:
            response = await client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise DispatchError("webhook", str(e), {"url": url}) from e
        if not response.is_success:
            logger.warning("webhook_rejected", url=url, status=response.status_code)
            raise DispatchError("webhook", f"HTTP {response.status_code}", {"url": url})
        logger.info("webhook_sent", url=url, status=response.status_code)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
