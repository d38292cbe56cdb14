"""
Persisted Collections — alert rules, templates, scheduled notifications.

Each collection lives in memory and is mirrored to a single JSON document
under a fixed key: read in full at start-up, rewritten in full on every
mutation (last write wins).

Write failures are logged and do not propagate: the in-memory copy stays
authoritative until the next successful save.
"""

import json
import uuid
from typing import Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError as PydanticValidationError

from fundwatch import metrics
from fundwatch.alerting.schemas import AlertRule, NotificationTemplate, ScheduledNotification
from fundwatch.exceptions import (
    NotFoundError,
    PersistenceError,
    RuleNotFoundError,
    ScheduleNotFoundError,
    TemplateNotFoundError,
)
from fundwatch.storage.kv import KeyValueStore

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class JsonCollectionStore(Generic[T]):
    """In-memory collection of pydantic records mirrored to one JSON document."""

    key: str = ""
    model: type[BaseModel] = BaseModel
    id_prefix: str = "item"

    def __init__(self, kv: KeyValueStore):
        self._kv = kv
        self._items: dict[str, T] = {}

    # ── Loading / saving ─────────────────────────────────────────────

    async def load(self) -> int:
        """Replace in-memory state with the persisted document. Returns count loaded."""
        try:
            raw = await self._kv.get(self.key)
        except Exception as e:
            logger.error("store_load_failed", key=self.key, error=str(e))
            return 0

        if not raw:
            self._items = {}
            return 0

        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("store_document_corrupt", key=self.key, error=str(e))
            return 0
        if not isinstance(entries, list):
            logger.error("store_document_corrupt", key=self.key, error="expected a JSON array")
            return 0

        items: dict[str, T] = {}
        for entry in entries:
            try:
                item = self.model.model_validate(entry)
            except PydanticValidationError as e:
                logger.warning(
                    "store_entry_skipped",
                    key=self.key,
                    entry_id=entry.get("id") if isinstance(entry, dict) else None,
                    errors=e.error_count(),
                )
                continue
            items[item.id] = item

        self._items = items
        logger.info("store_loaded", key=self.key, count=len(items))
        return len(items)

    async def save(self) -> bool:
        """Persist the whole collection. Returns False (and logs) on failure."""
        document = json.dumps(
            [item.model_dump(mode="json") for item in self._items.values()],
            ensure_ascii=False,
        )
        try:
            await self._kv.set(self.key, document)
            return True
        except Exception as e:
            error = PersistenceError(self.key, str(e))
            metrics.increment("store_write_errors_total")
            logger.error(
                "store_save_failed",
                key=self.key,
                error_code=error.code.value,
                error=error.message,
            )
            return False

    # ── Queries ──────────────────────────────────────────────────────

    def new_id(self) -> str:
        return f"{self.id_prefix}_{uuid.uuid4().hex[:12]}"

    def list(self) -> list[T]:
        return list(self._items.values())

    def get(self, item_id: str) -> Optional[T]:
        return self._items.get(item_id)

    def require(self, item_id: str) -> T:
        item = self._items.get(item_id)
        if item is None:
            raise self._not_found(item_id)
        return item

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    # ── Mutations ────────────────────────────────────────────────────

    async def add(self, item: T) -> T:
        self._items[item.id] = item
        await self.save()
        return item

    async def replace(self, item: T) -> T:
        self.require(item.id)
        self._items[item.id] = item
        await self.save()
        return item

    async def remove(self, item_id: str) -> T:
        item = self.require(item_id)
        del self._items[item_id]
        await self.save()
        return item

    def _not_found(self, item_id: str) -> NotFoundError:
        return NotFoundError(self.model.__name__, item_id)


class RuleStore(JsonCollectionStore[AlertRule]):
    key = "alertRules"
    model = AlertRule
    id_prefix = "rule"

    def enabled(self) -> list[AlertRule]:
        return [r for r in self._items.values() if r.enabled]

    def _not_found(self, item_id: str) -> NotFoundError:
        return RuleNotFoundError(item_id)


class TemplateStore(JsonCollectionStore[NotificationTemplate]):
    key = "notificationTemplates"
    model = NotificationTemplate
    id_prefix = "template"

    def _not_found(self, item_id: str) -> NotFoundError:
        return TemplateNotFoundError(item_id)


class ScheduleStore(JsonCollectionStore[ScheduledNotification]):
    key = "scheduledNotifications"
    model = ScheduledNotification
    id_prefix = "scheduled"

    def _not_found(self, item_id: str) -> NotFoundError:
        return ScheduleNotFoundError(item_id)
