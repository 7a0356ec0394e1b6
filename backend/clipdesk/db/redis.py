"""Redis client for locking and pub/sub"""
import asyncio
import logging
from contextlib import contextmanager

import redis
import redis.asyncio as aioredis

from clipdesk.core.config import settings
from clipdesk.core.exceptions import AssetBusyError

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None
_async_client = None


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def get_async_redis_client():
    """Get or create async Redis client (lazy initialization)

    Recreates the client if it is tied to a different event loop.
    """
    global _async_client

    try:
        current_loop = asyncio.get_running_loop()
    except RuntimeError:
        return None

    if _async_client is not None:
        client_loop = getattr(_async_client.connection_pool, '_loop', None)
        if client_loop is not current_loop:
            _async_client = None

    if _async_client is None:
        _async_client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=20
        )
        _async_client.connection_pool._loop = current_loop

    return _async_client


def acquire_lock(lock_key: str, timeout: int = 30) -> bool:
    """Acquire a distributed lock using Redis SET with NX and EX.

    Args:
        lock_key: The lock key to acquire
        timeout: Lock timeout in seconds (default 30)

    Returns:
        True if lock was acquired, False if lock already exists
    """
    result = get_redis_client().set(lock_key, "1", nx=True, ex=timeout)
    return result is True


def release_lock(lock_key: str) -> None:
    """Release a distributed lock"""
    get_redis_client().delete(lock_key)


@contextmanager
def asset_lock(asset_id: str, timeout: int = None):
    """Hold the per-video lock for the duration of a workflow operation

    Raises:
        AssetBusyError: If another operation already holds the lock
    """
    lock_key = f"lock:video:{asset_id}"
    if not acquire_lock(lock_key, timeout or settings.ASSET_LOCK_TIMEOUT):
        raise AssetBusyError(asset_id)
    try:
        yield
    finally:
        release_lock(lock_key)
