import json
import logging
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from .config import settings

log = logging.getLogger(__name__)

client: Optional[aioredis.Redis] = None


def cache_enabled() -> bool:
    return bool(settings.redis_url)


def _key(name: str) -> str:
    return f"{settings.cache_key_prefix}{name}"


def get_client() -> Optional[aioredis.Redis]:
    """Lazily create the Redis client. Returns None when no REDIS_URL is set."""
    global client
    if not cache_enabled():
        return None
    if client is None:
        client = aioredis.from_url(settings.redis_url, decode_responses=True)
    return client


async def close_client():
    global client
    if client is not None:
        await client.aclose()
        client = None


async def ping() -> bool:
    redis_client = get_client()
    if redis_client is None:
        return True
    return bool(await redis_client.ping())


async def get_json(name: str) -> Optional[Any]:
    """Read a cached JSON value; cache errors count as a miss."""
    redis_client = get_client()
    if redis_client is None:
        return None
    try:
        raw = await redis_client.get(_key(name))
    except RedisError:
        log.exception("Cache read failed for %s", name)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Discarding corrupt cache entry %s", name)
        return None


def _generation_key(name: str) -> str:
    return _key(f"{name}:gen")


async def get_generation(name: str) -> Optional[int]:
    """Invalidation counter for ``name``; read it before loading what :func:`set_json` will store."""
    redis_client = get_client()
    if redis_client is None:
        return None
    try:
        raw = await redis_client.get(_generation_key(name))
    except RedisError:
        log.exception("Cache generation read failed for %s", name)
        return None
    return int(raw or 0)


async def set_json(name: str, value: Any, generation: Optional[int] = None):
    """Store ``value``. With ``generation``, the write is dropped if an invalidation happened since."""
    redis_client = get_client()
    if redis_client is None:
        return
    try:
        if generation is None:
            await redis_client.set(_key(name), json.dumps(value), ex=settings.cache_ttl)
            return
        async with redis_client.pipeline() as pipe:
            await pipe.watch(_generation_key(name))
            current = int(await pipe.get(_generation_key(name)) or 0)
            if current != generation:
                await pipe.unwatch()
                log.debug("Skipping stale cache write for %s", name)
                return
            pipe.multi()
            pipe.set(_key(name), json.dumps(value), ex=settings.cache_ttl)
            await pipe.execute()
    except WatchError:
        log.debug("Skipping cache write for %s, invalidated meanwhile", name)
    except RedisError:
        log.exception("Cache write failed for %s", name)


async def invalidate(name: str):
    redis_client = get_client()
    if redis_client is None:
        return
    try:
        await redis_client.incr(_generation_key(name))
        await redis_client.delete(_key(name))
    except RedisError:
        log.exception("Cache invalidation failed for %s", name)
