"""
CodeShift - Session Cache
=========================

Thin async wrapper over Redis for login sessions.

Redis is optional at runtime: connection errors are logged and read as
cache misses, so token checks fall back to JWT verification.
"""

import json
from typing import Any, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from src.core.config import settings

logger = structlog.get_logger(__name__)

SESSION_PREFIX = "session:"


def session_key(token: str) -> str:
    return f"{SESSION_PREFIX}{token}"


class SessionCache:
    """JSON values in Redis with optional expiry."""

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        self._client = client or redis.from_url(url or str(settings.REDIS_URL), decode_responses=True)

    async def set_json(self, key: str, value: Any, expire_seconds: Optional[int] = None) -> None:
        try:
            await self._client.set(key, json.dumps(value), ex=expire_seconds)
        except RedisError as e:
            logger.warning("cache_unavailable", op="set", key=key, error=str(e))

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning("cache_unavailable", op="get", key=key, error=str(e))
            return None
        return json.loads(raw) if raw else None

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as e:
            logger.warning("cache_unavailable", op="delete", key=key, error=str(e))

    async def exists(self, key: str) -> bool:
        try:
            return await self._client.exists(key) == 1
        except RedisError as e:
            logger.warning("cache_unavailable", op="exists", key=key, error=str(e))
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()


_cache: Optional[SessionCache] = None


def get_cache() -> SessionCache:
    """FastAPI dependency; one client per process, overridable in tests."""
    global _cache
    if _cache is None:
        _cache = SessionCache()
    return _cache
