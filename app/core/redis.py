"""
app/core/redis.py

Async Redis client and distributed lock

Provides the shared asynchronous Redis client and a lock helper used to
serialize scheduled jobs across service instances:
- Lock acquired with SET NX EX (auto-expires if the holder dies)
- Release only deletes the key when the stored owner token still matches
"""

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis

from app.core.config import settings

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# Redis Client Initialization
# ---------------------------------------------------
redis_client: redis.Redis | None = None  # type: ignore[type-arg]

try:
    redis_client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        decode_responses=True,
    )
    logger.info(
        f"[REDIS ASYNC] Initialized async Redis client for {settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
    )
except redis.RedisError as e:
    logger.error(f"[REDIS ASYNC] Initialization failed: {e}")
    redis_client = None

# Prefix for all lock keys
LOCK_PREFIX = "lock:"

# Compare-and-delete so a lock that expired and was re-acquired elsewhere is not released
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockNotAcquired(Exception):
    """Raised when another holder owns the lock."""


# ---------------------------------------------------
# Distributed Lock
# ---------------------------------------------------
@asynccontextmanager
async def distributed_lock(
    name: str, ttl_seconds: int, client: redis.Redis | None = None  # type: ignore[type-arg]
) -> AsyncIterator[bool]:
    """
    Hold a Redis lock for the duration of the block.

    Yields True when the lock is held, False when Redis is unavailable
    (the caller decides whether to proceed unlocked).

    Raises:
        LockNotAcquired: If another holder currently owns the lock.
    """
    conn = client if client is not None else redis_client
    key = f"{LOCK_PREFIX}{name}"
    owner = secrets.token_hex(16)

    if not conn:
        logger.warning(f"[LOCK] Redis unavailable: running '{name}' without a lock.")
        yield False
        return

    try:
        acquired = await conn.set(key, owner, nx=True, ex=ttl_seconds)
    except redis.RedisError as e:
        logger.warning(f"[LOCK] Redis error acquiring '{name}', running without a lock: {e}")
        yield False
        return

    if not acquired:
        logger.info(f"[LOCK] '{name}' is held by another instance.")
        raise LockNotAcquired(name)

    logger.debug(f"[LOCK] Acquired '{name}' for {ttl_seconds}s")
    try:
        yield True
    finally:
        try:
            await conn.eval(_RELEASE_SCRIPT, 1, key, owner)
            logger.debug(f"[LOCK] Released '{name}'")
        except redis.RedisError as e:
            logger.error(f"[LOCK] Failed to release '{name}', it will expire after TTL: {e}")
