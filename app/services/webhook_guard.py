"""
Webhook delivery guard - short-circuits redelivered Paystack webhooks.

Best effort only: the conditional status update in ReconciliationService is
what guarantees at-most-once application. Redis errors never block a webhook.
"""

import hashlib
import logging
from typing import Union

from redis import asyncio as aioredis
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

KEY_PREFIX = "paystack:webhook:"


class WebhookDeliveryGuard:
    """Tracks webhook bodies already processed within a TTL window."""

    def __init__(self, redis: Redis, ttl_seconds: int = 86400):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = 86400) -> "WebhookDeliveryGuard":
        """Guard with its own connection pool; no I/O until the first claim."""
        client = aioredis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=5.0,
            health_check_interval=30,
        )
        logger.info("Webhook guard Redis client initialized")
        return cls(client, ttl_seconds=ttl_seconds)

    async def close(self) -> None:
        await self.redis.aclose()

    @staticmethod
    def delivery_key(body: Union[bytes, str]) -> str:
        raw = body.encode("utf-8") if isinstance(body, str) else body
        return KEY_PREFIX + hashlib.sha256(raw).hexdigest()

    async def claim(self, key: str) -> bool:
        """
        Claim a delivery. Returns False if the same body was claimed within
        the TTL window, True otherwise (including when Redis is down).
        """
        try:
            claimed = await self.redis.set(key, "1", nx=True, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"Webhook guard unavailable, processing anyway: {e}")
            return True
        return bool(claimed)

    async def release(self, key: str) -> None:
        """Forget a claim so a redelivery is processed again."""
        try:
            await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Failed to release webhook claim {key}: {e}")
