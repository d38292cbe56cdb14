"""
Channel interfaces consumed by the action dispatcher.

Concrete senders live alongside (push, whatsapp, email, webhook); tests
substitute plain fakes.
"""

from typing import Any, Optional, Protocol


class PushSender(Protocol):
    async def send(self, title: str, body: str, data: Optional[dict[str, Any]] = None) -> None:
        ...


class MessagingSender(Protocol):
    async def send(self, message: str, category: str) -> None:
        ...


class EmailSender(Protocol):
    async def send(self, recipients: list[str], subject: str, body: str) -> None:
        ...


class WebhookPoster(Protocol):
    async def post(self, url: str, payload: dict[str, Any]) -> None:
        ...
