"""
Tests for the Paystack webhook endpoint.
"""

import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.config import PaystackConfig
from app.fsm.states import PaymentStatus
from app.models import Payment, RentLedgerEntry
from app.services.paystack_signature import compute_paystack_signature
from conftest import TEST_SECRET

WEBHOOK_URL = "/webhooks/paystack"


def _body(event: str, reference: str, **data) -> bytes:
    return json.dumps({"event": event, "data": {"reference": reference, **data}}).encode()


def _signed(body: bytes, secret: str = TEST_SECRET) -> dict:
    return {
        "x-paystack-signature": compute_paystack_signature(body, secret),
        "content-type": "application/json",
    }


async def _pending_payment(db, seed, reference: str) -> Payment:
    payment = Payment(
        lease_id=seed.lease.id,
        amount=Decimal("150000.00"),
        due_date=date(2026, 11, 1),
        status=PaymentStatus.PENDING.value,
        reference=reference,
    )
    db.add(payment)
    await db.flush()
    return payment


async def _ledger_count(db) -> int:
    return (await db.execute(select(func.count(RentLedgerEntry.id)))).scalar_one()


class TestWebhookAuthentication:
    """Requests are rejected before any processing unless signed."""

    @pytest.mark.asyncio
    async def test_missing_signature(self, api_client, fake_paystack):
        response = await api_client.post(WEBHOOK_URL, content=_body("charge.success", "ref"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing signature"
        assert fake_paystack.requests == []

    @pytest.mark.asyncio
    async def test_invalid_signature(self, api_client, fake_paystack, redis_mock):
        body = _body("charge.success", "ref")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body, "wrong-secret"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid signature"
        assert fake_paystack.requests == []
        redis_mock.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signature_over_different_body(self, api_client):
        signed_body = _body("charge.success", "ref", amount=100)
        sent_body = _body("charge.success", "ref", amount=100000)

        response = await api_client.post(WEBHOOK_URL, content=sent_body, headers=_signed(signed_body))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unconfigured_secret(self, api_client):
        from app.config import get_paystack_config
        from app.main import app

        app.dependency_overrides[get_paystack_config] = lambda: PaystackConfig(secret_key="")
        body = _body("charge.success", "ref")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_signed_garbage_is_bad_request(self, api_client):
        body = b'{"event": "charge.success"}'

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 400


class TestWebhookProcessing:
    """Authenticated events."""

    @pytest.mark.asyncio
    async def test_charge_success_marks_paid(self, api_client, db, seed, fake_paystack, redis_mock):
        payment = await _pending_payment(db, seed, "ref-1")
        fake_paystack.settle("ref-1", "success", amount=15000000)
        body = _body("charge.success", "ref-1", status="success", amount=15000000)

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "applied"}
        await db.refresh(payment)
        assert payment.status == PaymentStatus.PAID.value
        assert await _ledger_count(db) == 1
        redis_mock.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_delivery_short_circuits(self, api_client, db, seed, fake_paystack, redis_mock):
        await _pending_payment(db, seed, "ref-1")
        redis_mock.set.return_value = None
        body = _body("charge.success", "ref-1")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 200
        assert response.json()["status"] == "duplicate"
        assert fake_paystack.requests == []

    @pytest.mark.asyncio
    async def test_redelivery_past_guard_applies_once(self, api_client, db, seed, fake_paystack):
        await _pending_payment(db, seed, "ref-1")
        fake_paystack.settle("ref-1", "success", amount=15000000)
        body = _body("charge.success", "ref-1")

        first = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))
        second = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert first.json()["status"] == "applied"
        assert second.json()["status"] == "duplicate"
        assert await _ledger_count(db) == 1

    @pytest.mark.asyncio
    async def test_unknown_reference_acknowledged(self, api_client, db, seed, fake_paystack):
        fake_paystack.settle("ref-ghost", "success", amount=15000000)
        body = _body("charge.success", "ref-ghost")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 200
        assert response.json()["status"] == "not_found"
        count = (await db.execute(select(func.count(Payment.id)))).scalar_one()
        assert count == 0

    @pytest.mark.asyncio
    async def test_verify_failure_releases_claim(self, api_client, db, seed, fake_paystack, redis_mock):
        payment = await _pending_payment(db, seed, "ref-1")
        fake_paystack.verify_error = {"status_code": 503, "body": {"status": False, "message": "Service unavailable"}}
        body = _body("charge.success", "ref-1")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 502
        redis_mock.delete.assert_awaited_once()
        await db.refresh(payment)
        assert payment.status == PaymentStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_charge_abandoned_noted(self, api_client, db, seed):
        payment = await _pending_payment(db, seed, "ref-1")
        body = _body("charge.abandoned", "ref-1")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.json()["status"] == "noted"
        await db.refresh(payment)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.notes == "Paystack payment abandoned"

    @pytest.mark.asyncio
    async def test_unhandled_event_ignored(self, api_client):
        body = _body("subscription.create", "sub-1")

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    @pytest.mark.asyncio
    async def test_event_without_reference_acknowledged(self, api_client, fake_paystack):
        body = json.dumps(
            {"event": "subscription.create", "data": {"subscription_code": "SUB_vsyqdmlzble3uii", "status": "active"}}
        ).encode()

        response = await api_client.post(WEBHOOK_URL, content=body, headers=_signed(body))

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "ignored"}
        assert fake_paystack.requests == []
