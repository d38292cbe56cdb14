"""
Key-Value Persistence Backends.

The engine persists each collection as one JSON document under a fixed key.
Backends only need get/set of a string blob:
- InMemoryKeyValueStore: tests and ephemeral runs
- FileKeyValueStore: one <key>.json file per document (single device)
- RedisKeyValueStore: shared Redis instance
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


class FileKeyValueStore:
    """Stores each key as <directory>/<key>.json, replaced atomically on write."""

    def __init__(self, directory: str | Path):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = key.replace("/", "_").replace(":", "_")
        return self._dir / f"{safe}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._write, self._path(key), value)

    def _write(self, path: Path, value: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)


class RedisKeyValueStore:
    """Redis-backed store; connection is created lazily on first use."""

    def __init__(self, url: str, key_prefix: str = ""):
        self._url = url
        self._prefix = key_prefix
        self._redis = None

    async def _client(self):
        if self._redis is None:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=3,
            )
            logger.info("redis_store_connected")
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        r = await self._client()
        return await r.get(self._prefix + key)

    async def set(self, key: str, value: str) -> None:
        r = await self._client()
        await r.set(self._prefix + key, value)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
