"""
Tests for the Redis-backed webhook delivery guard.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.api.deps import get_webhook_guard
from app.services.webhook_guard import KEY_PREFIX, WebhookDeliveryGuard


class TestDeliveryKey:

    def test_same_body_same_key(self):
        body = b'{"event":"charge.success","data":{"reference":"ref-1"}}'

        assert WebhookDeliveryGuard.delivery_key(body) == WebhookDeliveryGuard.delivery_key(body.decode())
        assert WebhookDeliveryGuard.delivery_key(body).startswith(KEY_PREFIX)

    def test_different_body_different_key(self):
        assert WebhookDeliveryGuard.delivery_key(b"a") != WebhookDeliveryGuard.delivery_key(b"b")


class TestClaim:

    @pytest.mark.asyncio
    async def test_first_claim_sets_key_with_ttl(self, redis_mock):
        guard = WebhookDeliveryGuard(redis_mock, ttl_seconds=120)

        assert await guard.claim("k") is True
        redis_mock.set.assert_awaited_once_with("k", "1", nx=True, ex=120)

    @pytest.mark.asyncio
    async def test_repeat_claim_rejected(self, redis_mock):
        redis_mock.set.return_value = None

        assert await WebhookDeliveryGuard(redis_mock).claim("k") is False

    @pytest.mark.asyncio
    async def test_redis_down_processes_anyway(self, redis_mock):
        redis_mock.set.side_effect = RedisConnectionError("refused")

        assert await WebhookDeliveryGuard(redis_mock).claim("k") is True

    @pytest.mark.asyncio
    async def test_release_deletes_key(self, redis_mock):
        await WebhookDeliveryGuard(redis_mock).release("k")

        redis_mock.delete.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_release_tolerates_redis_errors(self, redis_mock):
        redis_mock.delete.side_effect = RedisConnectionError("refused")

        await WebhookDeliveryGuard(redis_mock).release("k")


class TestGuardLifecycle:

    @pytest.mark.asyncio
    async def test_from_url_builds_lazy_client(self):
        guard = WebhookDeliveryGuard.from_url("redis://localhost:6379/0", ttl_seconds=300)

        assert guard.ttl_seconds == 300
        assert guard.redis.connection_pool.connection_kwargs["decode_responses"] is True
        await guard.close()

    @pytest.mark.asyncio
    async def test_dependency_reuses_app_guard(self, redis_mock):
        from types import SimpleNamespace

        guard = WebhookDeliveryGuard(redis_mock)
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(webhook_guard=guard)))

        assert get_webhook_guard(request) is guard

    @pytest.mark.asyncio
    async def test_dependency_builds_guard_when_missing(self):
        from types import SimpleNamespace

        from app.config import settings

        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

        guard = get_webhook_guard(request)

        assert request.app.state.webhook_guard is guard
        assert guard.ttl_seconds == settings.webhook_dedup_ttl_seconds
        await guard.close()
