"""Redis connection, error translation and leases.

Handles:
- Client construction (owned by the app lifespan / scripts, never global)
- Translating transport failures into `StoreUnavailableError`
- Leases (SET NX EX) to keep settlement runs from overlapping

Durability: the rank sorted set and the prize pool counter are the only copy
of scores, so Redis must run with AOF persistence (`--appendonly yes`).
"""

from collections.abc import Iterator
from contextlib import contextmanager
import logging

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from leaderboard.errors import StoreUnavailableError
from leaderboard.settings import Settings

logger = logging.getLogger("uvicorn.error")

# Key prefixes
PREFIX_LOCK = "lock:"
PREFIX_SETTLED_PERIOD = "settlement:period:"

# TTL constants (in seconds)
TTL_SETTLED_PERIOD = 60 * 60 * 24 * 14  # 2 weeks


async def create_redis(settings: Settings, *, ping: bool = True) -> redis.Redis:
    """Create a Redis client and validate connectivity."""
    client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    if ping:
        # Validate connectivity early (especially for `rediss://` in production).
        await client.ping()
        logger.info("Redis connected")
    return client


@contextmanager
def translate_redis_errors(store: str, operation: str) -> Iterator[None]:
    """Re-raise connectivity failures as `StoreUnavailableError`."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError, OSError) as e:
        logger.error(f"Redis {store} store unavailable during {operation}: {e}")
        raise StoreUnavailableError(store, operation, cause=e) from e


# ============================================================
# Leases (prevent overlapping runs across processes)
# ============================================================


async def acquire_lock(client: redis.Redis, key: str, token: str, ttl: int) -> bool:
    """Acquire a lease.

    Args:
        client: Redis client.
        key: Lock key (e.g., "settlement").
        token: Owner token, checked on release.
        ttl: Lock timeout in seconds.

    Returns:
        True if lock acquired, False if already locked.
    """
    with translate_redis_errors("lock", "acquire"):
        # SET NX (only if not exists) with TTL
        result = await client.set(f"{PREFIX_LOCK}{key}", token, nx=True, ex=ttl)
    return bool(result)


async def release_lock(client: redis.Redis, key: str, token: str) -> bool:
    """Release a lease if `token` still owns it.

    Returns:
        True if the lease was ours and got deleted.
    """
    lock_key = f"{PREFIX_LOCK}{key}"
    with translate_redis_errors("lock", "release"):
        owner = await client.get(lock_key)
        if owner != token:
            # Expired and possibly re-acquired by another run.
            return False
        await client.delete(lock_key)
    return True


# ============================================================
# Settlement period markers
# ============================================================


async def mark_period_settled(client: redis.Redis, period: str, run_id: str) -> bool:
    """Record that `period` was settled by `run_id`.

    Returns:
        False if the period was already marked.
    """
    with translate_redis_errors("settlement", "mark period"):
        result = await client.set(
            f"{PREFIX_SETTLED_PERIOD}{period}", run_id, nx=True, ex=TTL_SETTLED_PERIOD
        )
    return bool(result)


async def get_period_run(client: redis.Redis, period: str) -> str | None:
    """Return the run id that settled `period`, if any."""
    with translate_redis_errors("settlement", "read period"):
        return await client.get(f"{PREFIX_SETTLED_PERIOD}{period}")
