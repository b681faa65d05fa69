import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional
import orjson
from redis.exceptions import RedisError
from bazaar.cache._cache import CACHE_PREFIX, REDIS_LOCK_TIMEOUT, redis_client
from bazaar.cache.utils import build_key, deserialize, release_lock, serialize
from bazaar.common.logging_setup import get_logger
from bazaar.config.settings import config_settings

logger = get_logger("bazaar.cache")

CATEGORY_TREE_KEY = build_key(CACHE_PREFIX, "categories", "tree")


async def get_bytes(key: str) -> Optional[bytes]:
    try:
        return await redis_client.get(key)
    except RedisError as e:
        logger.warning("cache.get_failed", extra={"key": key, "error": str(e)})
        return None


async def set_bytes(key: str, data: bytes, ttl_seconds: int):
    try:
        await redis_client.set(key, data, ex=ttl_seconds)
    except RedisError as e:
        logger.warning("cache.set_failed", extra={"key": key, "error": str(e)})


async def invalidate(*keys: str):
    if not config_settings.CACHE_ENABLED:
        return
    try:
        await redis_client.delete(*keys)
        logger.debug("cache.invalidated", extra={"keys": list(keys)})
    except RedisError as e:
        logger.warning("cache.invalidate_failed", extra={"keys": list(keys), "error": str(e)})


def _decode(raw: Optional[bytes]):
    if raw is None:
        return None
    try:
        return deserialize(raw)
    except orjson.JSONDecodeError:
        return None


async def cache_get_or_set(
    key: str,
    ttl: int,
    loader: Callable[[], Awaitable[Any]],
    lock_timeout: int = REDIS_LOCK_TIMEOUT,
) -> Any:
    """Read-through cache. One caller recomputes on a miss while the others
    poll for the fresh value; any Redis failure falls back to the loader."""

    if not config_settings.CACHE_ENABLED:
        return await loader()

    cached = _decode(await get_bytes(key))
    if cached is not None:
        return cached

    lock_key = key + ":lock"
    token = uuid.uuid4().hex
    try:
        locked = await redis_client.set(lock_key, token, nx=True, ex=lock_timeout)
    except RedisError as e:
        logger.warning("cache.lock_failed", extra={"key": key, "error": str(e)})
        return await loader()

    if locked:
        try:
            # another worker may have filled it between our miss and the lock
            cached = _decode(await get_bytes(key))
            if cached is not None:
                return cached

            value = await loader()
            await set_bytes(key, serialize(value), ttl)
            return value
        finally:
            await release_lock(redis_client, lock_key, token)

    waited = 0.0
    interval = 0.05
    while waited < lock_timeout:
        await asyncio.sleep(interval)
        waited += interval
        cached = _decode(await get_bytes(key))
        if cached is not None:
            return cached

    logger.info("cache.wait_timeout", extra={"key": key})
    return await loader()
