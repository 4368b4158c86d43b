"""
Pytest configuration and fixtures.
"""

import sys
import os
import json
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Dict, List

# Keep a developer .env from leaking into tests
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add app to path
sys.path.append(os.getcwd())

from app.config import PaystackConfig
from app.database import Base
from app.fsm.states import LeaseStatus, UnitStatus
from app.models import Lease, Property, Tenant, Unit, User
from app.services.paystack_client import PaystackClient

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

TEST_SECRET = "sk_test_secret"


@pytest_asyncio.fixture
async def test_engine():
    """Create async engine for tests."""
    engine = create_async_engine(TEST_DB_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@dataclass
class Seed:
    landlord: User
    property: Property
    unit: Unit
    tenant: Tenant
    lease: Lease


@pytest_asyncio.fixture
async def seed(db) -> Seed:
    """Landlord with one property, unit, tenant and active lease."""
    landlord = User(email="landlord@example.com", name="Ada Landlord", currency="NGN")
    db.add(landlord)
    await db.flush()

    prop = Property(user_id=landlord.id, name="Palm Court", address="12 Marina, Lagos")
    db.add(prop)
    await db.flush()

    unit = Unit(property_id=prop.id, name="Flat 2B", status=UnitStatus.OCCUPIED.value)
    tenant = Tenant(
        user_id=landlord.id,
        auth_user_id=uuid.uuid4(),
        name="Tunde Tenant",
        email="tenant@example.com",
    )
    db.add_all([unit, tenant])
    await db.flush()

    lease = Lease(
        unit_id=unit.id,
        tenant_id=tenant.id,
        start_date=date.today() - timedelta(days=30),
        end_date=date.today() + timedelta(days=335),
        rent_amount=Decimal("150000.00"),
        status=LeaseStatus.ACTIVE.value,
    )
    db.add(lease)
    await db.flush()

    return Seed(landlord=landlord, property=prop, unit=unit, tenant=tenant, lease=lease)


class FakePaystackAPI:
    """
    In-memory stand-in for the Paystack transaction endpoints, mounted on
    an httpx.MockTransport.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.initialize_error: Dict[str, Any] = {}
        self.verify_error: Dict[str, Any] = {}

    def settle(self, reference: str, status: str = "success", amount: int = 0, **extra) -> None:
        """Set what /transaction/verify reports for a reference."""
        self.transactions[reference] = {
            "status": status,
            "reference": reference,
            "amount": amount,
            "currency": "NGN",
            "paid_at": "2026-10-01T10:00:00.000Z",
            "channel": "card",
            "gateway_response": "Successful" if status == "success" else "Declined",
            "metadata": "",
            **extra,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/transaction/initialize"):
            if self.initialize_error:
                return httpx.Response(self.initialize_error["status_code"], json=self.initialize_error["body"])
            body = json.loads(request.content)
            reference = body.get("reference") or f"ps_{len(self.requests)}"
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": f"https://checkout.paystack.com/{reference}",
                        "access_code": f"ac_{reference}",
                        "reference": reference,
                    },
                },
            )

        if request.method == "GET" and "/transaction/verify/" in path:
            if self.verify_error:
                return httpx.Response(self.verify_error["status_code"], json=self.verify_error["body"])
            reference = request.url.path.rsplit("/", 1)[-1]
            data = self.transactions.get(reference)
            if data is None:
                return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={"status": True, "message": "Verification successful", "data": data})

        return httpx.Response(404, json={"status": False, "message": "Not found"})


@pytest.fixture
def paystack_config() -> PaystackConfig:
    return PaystackConfig(
        secret_key=TEST_SECRET,
        base_url="https://api.paystack.test",
        timeout_seconds=5.0,
        verify_max_attempts=3,
    )


@pytest.fixture
def fake_paystack() -> FakePaystackAPI:
    return FakePaystackAPI()


@pytest.fixture
def make_paystack_client(paystack_config) -> Callable[..., PaystackClient]:
    """Build a PaystackClient whose HTTP layer is the given handler."""

    def _make(handler, config: PaystackConfig = None) -> PaystackClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return PaystackClient(config or paystack_config, http_client=http_client, retry_backoff_seconds=0)

    return _make


@pytest.fixture
def paystack_client(make_paystack_client, fake_paystack) -> PaystackClient:
    return make_paystack_client(fake_paystack.handler)


@pytest.fixture
def redis_mock():
    """Async Redis stand-in for the webhook delivery guard."""
    from unittest.mock import AsyncMock

    redis = AsyncMock()
    redis.set.return_value = True
    redis.delete.return_value = 1
    return redis


@pytest_asyncio.fixture
async def api_client(db, paystack_config, paystack_client, redis_mock):
    """
    HTTP client against the FastAPI app with the database session,
    Paystack client and Redis swapped for test doubles.
    """
    from app.api.deps import get_paystack_client, get_webhook_guard
    from app.config import get_paystack_config
    from app.database import get_db
    from app.main import app
    from app.services.webhook_guard import WebhookDeliveryGuard

    async def override_get_db():
        yield db

    async def override_get_paystack_client():
        yield paystack_client

    async def override_get_webhook_guard():
        return WebhookDeliveryGuard(redis_mock, ttl_seconds=60)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_paystack_config] = lambda: paystack_config
    app.dependency_overrides[get_paystack_client] = override_get_paystack_client
    app.dependency_overrides[get_webhook_guard] = override_get_webhook_guard

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()
