"""
Dataset attribute caches.

Fetched dataset attributes never change for the lifetime of a server, so
they are cached per dataset and key. The in-memory cache is the default;
the Redis cache shares fetched attributes between processes.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as aioredis

from pekclient.config.settings_loader import CacheSettings

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class DatasetCache:
    """Interface of dataset attribute caches."""

    async def get(self, dataset: str, key: str) -> Any:
        """Return the cached value or ``MISSING``."""
        raise NotImplementedError

    async def set(self, dataset: str, key: str, value: Any) -> None:
        raise NotImplementedError

    async def clear(self, dataset: Optional[str] = None) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class MemoryDatasetCache(DatasetCache):
    """Process-local cache."""

    def __init__(self):
        self._data: Dict[Tuple[str, str], Any] = {}

    async def get(self, dataset: str, key: str) -> Any:
        return self._data.get((dataset, key), MISSING)

    async def set(self, dataset: str, key: str, value: Any) -> None:
        self._data[(dataset, key)] = value

    async def clear(self, dataset: Optional[str] = None) -> None:
        if dataset is None:
            self._data.clear()
            return
        for cache_key in [k for k in self._data if k[0] == dataset]:
            del self._data[cache_key]


class RedisDatasetCache(DatasetCache):
    """
    Redis-backed cache.

    Values are stored as JSON under ``<prefix><dataset>:<key>``.
    """

    def __init__(self, redis_client: aioredis.Redis, prefix: str = "pek:dataset:", ttl: int = 3600):
        """
        Args:
            redis_client: Async Redis client
            prefix: Key prefix
            ttl: Expiry in seconds (0 = no expiry)
        """
        self.redis = redis_client
        self.prefix = prefix
        self.ttl = ttl

    def _key(self, dataset: str, key: str) -> str:
        return f"{self.prefix}{dataset}:{key}"

    async def get(self, dataset: str, key: str) -> Any:
        data = await self.redis.get(self._key(dataset, key))
        if data is None:
            return MISSING
        return json.loads(data)

    async def set(self, dataset: str, key: str, value: Any) -> None:
        await self.redis.set(self._key(dataset, key), json.dumps(value), ex=self.ttl or None)
        logger.debug(f"Cached {key} of dataset {dataset} in Redis")

    async def clear(self, dataset: Optional[str] = None) -> None:
        pattern = f"{self.prefix}{dataset}:*" if dataset else f"{self.prefix}*"
        async for cache_key in self.redis.scan_iter(match=pattern):
            await self.redis.delete(cache_key)

    async def close(self) -> None:
        await self.redis.aclose()


def build_dataset_cache(settings: CacheSettings) -> DatasetCache:
    """
    Create the cache backend selected in the settings.

    Args:
        settings: Cache settings

    Returns:
        DatasetCache instance
    """
    if settings.backend == "redis":
        client = aioredis.from_url(settings.redis_url, decode_responses=True)
        logger.info(f"Using Redis dataset cache at {settings.redis_url}")
        return RedisDatasetCache(client, prefix=settings.prefix, ttl=settings.ttl)
    return MemoryDatasetCache()
