# infrastructure/cache/store.py
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Durable key-value store holding JSON-compatible values.

    ``get`` returns None only when the key is absent; every failure of the store itself
    raises StoreUnavailableError so callers can tell the two outcomes apart. ``set`` replaces
    the whole value in one write; there are no cross-key transactions.

    Counters (``incr``) and member sets (``add_member``/``members``) are updated by the
    store in a single command, so concurrent writers never lose each other's updates.
    A set key must only be used through the set operations.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Increment the integer counter at ``key`` (missing counts as 0) and return the new value."""

    @abstractmethod
    async def add_member(self, key: str, member: str) -> None:
        """Add ``member`` to the set stored at ``key``."""

    @abstractmethod
    async def members(self, key: str) -> List[str]:
        """Return the members of the set at ``key`` in sorted order; empty when the key is absent."""

    async def close(self) -> None:
        return None


def encode_value(key: str, value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as e:
        raise StoreUnavailableError(f"Value for {key} is not JSON serializable: {str(e)}")


def decode_value(key: str, raw: Any) -> Optional[Any]:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StoreUnavailableError(f"Corrupt value stored under {key}: {str(e)}")


class RedisCacheStore(CacheStore):
    """Cache store backed by Redis, one JSON string per key."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float = 5.0) -> "RedisCacheStore":
        """Build a store from a redis:// or rediss:// URL."""
        client = aioredis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        logger.info("Redis cache store configured")
        return cls(client)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise StoreUnavailableError(f"GET {key} failed: {str(e)}")
        value = decode_value(key, raw)
        logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {key}")
        return value

    async def set(self, key: str, value: Any) -> None:
        payload = encode_value(key, value)
        try:
            await self.client.set(key, payload)
        except RedisError as e:
            raise StoreUnavailableError(f"SET {key} failed: {str(e)}")
        logger.debug(f"Cache write: {key} ({len(payload)} bytes)")

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise StoreUnavailableError(f"DEL {key} failed: {str(e)}")
        logger.debug(f"Cache delete: {key}")

    async def incr(self, key: str) -> int:
        try:
            value = await self.client.incr(key)
        except RedisError as e:
            raise StoreUnavailableError(f"INCR {key} failed: {str(e)}")
        logger.debug(f"Cache counter: {key} = {value}")
        return int(value)

    async def add_member(self, key: str, member: str) -> None:
        try:
            await self.client.sadd(key, member)
        except RedisError as e:
            raise StoreUnavailableError(f"SADD {key} failed: {str(e)}")
        logger.debug(f"Cache set add: {key} += {member}")

    async def members(self, key: str) -> List[str]:
        try:
            raw = await self.client.smembers(key)
        except RedisError as e:
            raise StoreUnavailableError(f"SMEMBERS {key} failed: {str(e)}")
        return sorted(item.decode("utf-8") if isinstance(item, bytes) else item for item in raw)

    async def close(self) -> None:
        try:
            await self.client.aclose()
            logger.info("Redis cache store closed")
        except RedisError as e:
            logger.warning(f"Error closing Redis connection: {str(e)}")


class InMemoryCacheStore(CacheStore):
    """Process-local cache store keeping the serialized JSON text, for local runs and tests."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._sets: Dict[str, Set[str]] = {}

    async def get(self, key: str) -> Optional[Any]:
        return decode_value(key, self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = encode_value(key, value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._sets.pop(key, None)

    async def incr(self, key: str) -> int:
        current = decode_value(key, self._data.get(key)) or 0
        if not isinstance(current, int):
            raise StoreUnavailableError(f"Value stored under {key} is not a counter")
        self._data[key] = encode_value(key, current + 1)
        return current + 1

    async def add_member(self, key: str, member: str) -> None:
        self._sets.setdefault(key, set()).add(member)

    async def members(self, key: str) -> List[str]:
        return sorted(self._sets.get(key, ()))

    def keys(self) -> list:
        return sorted(set(self._data) | set(self._sets))
