"""Best-effort cache over redis.

The cache is never authoritative. Any redis failure is logged and reported as
a miss so request handling carries on without it.
"""

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class CacheService:
    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> "CacheService":
        if not settings.redis_addr:
            logger.info("REDIS_ADDR not set; cache disabled")
            return cls(None)
        host, _, port = settings.redis_addr.partition(":")
        client = redis.Redis(
            host=host or "localhost",
            port=int(port or 6379),
            password=settings.redis_password,
            db=settings.redis_db,
            socket_timeout=2,
            socket_connect_timeout=2,
            decode_responses=True,
        )
        return cls(client)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get_json(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    def set_json(self, key: str, value: Any, ttl: int) -> bool:
        if self.client is None:
            return False
        try:
            self.client.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except redis.RedisError as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)
            return False

    def delete(self, *keys: str) -> None:
        if self.client is None or not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as exc:
            logger.warning("Cache delete failed for %s: %s", keys, exc)

    def incr_window(self, key: str, ttl: int) -> Optional[int]:
        """Increment a counter, setting its expiry on first hit. ``None`` when unavailable."""
        if self.client is None:
            return None
        try:
            count = self.client.incr(key)
            if count == 1:
                self.client.expire(key, ttl)
            return int(count)
        except redis.RedisError as exc:
            logger.warning("Rate counter unavailable for %s: %s", key, exc)
            return None

    def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError as exc:
            logger.warning("Cache ping failed: %s", exc)
            return False
