# backend/tutorhub/core/cache_redis.py
"""
Sync Redis client shared by the booking locks and the availability cache.

Returns None when ``REDIS_URL`` is empty or the server does not answer a
ping; callers then use their process-local fallback.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from redis import Redis

from .config import settings

logger = logging.getLogger(__name__)

_client: Optional[Redis] = None
_client_lock = threading.Lock()


def get_sync_redis_client() -> Optional[Redis]:
    global _client
    if not settings.redis_url:
        return None
    if _client is not None:
        return _client
    with _client_lock:
        if _client is not None:
            return _client
        try:
            client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
            client.ping()
        except Exception as exc:
            logger.warning("[REDIS-CACHE] Sync Redis client unavailable: %s", exc)
            return None
        _client = client
        logger.info("[REDIS-CACHE] Sync Redis client initialized")
        return _client
