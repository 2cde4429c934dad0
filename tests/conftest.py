import json
from decimal import Decimal
from itertools import count
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from syncpay.core.config import GatewayConfig
from syncpay.core.dependencies import get_current_user, get_db, get_gateway_config
from syncpay.main import app
from syncpay.models import Company, Plan, Users
from syncpay.models.base import Base
from syncpay.modules.payment.gateway_client import RazorpayClient

TEST_KEY_ID = "rzp_test_key"
TEST_SECRET = "test_secret"
TEST_API_BASE = "https://gateway.test/v1"


@pytest.fixture
def gateway_config():
    return GatewayConfig(key_id=TEST_KEY_ID, key_secret=TEST_SECRET, api_base=TEST_API_BASE)


# --- Database backed fixtures (in-memory SQLite) ---

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        session.add_all([
            Company(
                id="c1",
                name="Acme Corp",
                billing_details={"address": "12 MG Road, Bengaluru", "taxId": "29ABCDE1234F1Z5"},
            ),
            Company(id="c2", name="Other Co", billing_details=None),
        ])
        await session.flush()
        session.add_all([
            Users(id="u1", name="Asha", email="asha@acme.test", role="admin", company_id="c1"),
            Users(id="u2", name="Ravi", email="ravi@other.test", role="admin", company_id="c2"),
            Plan(id="p1", name="Pro", monthly_price=Decimal("500"), is_active=True),
            Plan(id="p2", name="Team", monthly_price=Decimal("999"), is_active=True),
            Plan(id="p_old", name="Legacy", monthly_price=Decimal("199"), is_active=False),
        ])
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# --- Fake gateway ---

class FakeGateway:
    """Records requests and answers like the Razorpay Orders API."""

    def __init__(self):
        self.requests = []
        self.listed_orders = []
        self.orders = {}
        self._ids = count(1)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST" and request.url.path.endswith("/orders"):
            body = json.loads(request.content)
            order = {
                "id": f"order_{next(self._ids)}",
                "entity": "order",
                "amount": body["amount"],
                "currency": body["currency"],
                "receipt": body["receipt"],
                "status": "created",
                "notes": body.get("notes", {}),
                "attempts": 0,
            }
            self.orders[order["id"]] = order
            return httpx.Response(200, json=order)
        if request.method == "GET" and request.url.path.endswith("/orders"):
            skip = int(request.url.params.get("skip", 0))
            size = int(request.url.params.get("count", 100))
            return httpx.Response(200, json={"items": self.listed_orders[skip:skip + size]})
        if request.method == "GET" and "/orders/" in request.url.path:
            order_id = request.url.path.rsplit("/", 1)[1]
            if order_id in self.orders:
                return httpx.Response(200, json=self.orders[order_id])
        return httpx.Response(404, json={"error": {"description": "not found"}})


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def gateway_client(gateway_config, fake_gateway):
    return RazorpayClient(gateway_config, transport=httpx.MockTransport(fake_gateway.handler))


# --- HTTP level fixtures ---

@pytest.fixture
def mock_db_session():
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
def app_instance(mock_db_session, gateway_config):
    async def _override_db():
        yield mock_db_session
    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_gateway_config] = lambda: gateway_config
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def current_user():
    return Users(id="u1", name="Asha", email="asha@acme.test", role="admin", company_id="c1")


@pytest.fixture
def anonymous_client(app_instance):
    with TestClient(app_instance) as client:
        yield client


@pytest.fixture
def authenticated_client(app_instance, current_user):
    """Provide an authenticated client for testing (member of company c1)."""
    app_instance.dependency_overrides[get_current_user] = lambda: current_user
    with TestClient(app_instance) as client:
        yield client
