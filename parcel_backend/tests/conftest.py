"""
Centralized Test Configuration.
"""

import pytest
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool, Pool

from parcel_backend.app.main import app
from parcel_backend.app.db.session import get_db, Base
from parcel_backend.app.core.config import PaymentProviderConfig, DeliveryProviderConfig, DispatchPolicy
from parcel_backend.app.core.dependencies import (
    get_payment_config,
    get_delivery_config,
    get_dispatch_policy,
    get_payment_client,
    get_delivery_client,
)
from parcel_backend.app.domain.dispatch.dispatch_orchestrator import DispatchOrchestrator
from parcel_backend.app.models.order import Order
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.bulk_order import BulkOrder
from parcel_backend.app.models.order_enums import OrderStatus, DeliveryMethod, DispatchStatus
from parcel_backend.tests.fakes import FakePaymentProvider, FakeDeliveryProvider, PAYMENT_SALT

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Configuration

@pytest.fixture
def payment_config():
    return PaymentProviderConfig(
        api_url="https://pay.test/v1/payment-requests",
        api_key="pay-key",
        salt=PAYMENT_SALT,
        webhook_url="http://test/v1/webhooks/payment",
        success_url="http://test/v1/payment/success",
    )


@pytest.fixture
def delivery_config():
    return DeliveryProviderConfig(
        api_url="https://delivery.test/api/v2/dn/jobs",
        api_key="delivery-key",
        webhook_url="http://test/v1/webhooks/delivery",
        timeout_seconds=1.0,
    )


@pytest.fixture
def dispatch_policy():
    return DispatchPolicy(timeout_seconds=1.0, max_attempts=3, backoff_seconds=0)


@pytest.fixture
def payment_provider():
    return FakePaymentProvider()


@pytest.fixture
def delivery_provider():
    return FakeDeliveryProvider()


@pytest.fixture
def orchestrator(delivery_provider, delivery_config, dispatch_policy):
    return DispatchOrchestrator(delivery_provider, delivery_config, dispatch_policy)


@pytest.fixture(autouse=True)
def apply_overrides(payment_config, delivery_config, dispatch_policy, payment_provider, delivery_provider):
    """Point the app at the test database and the fake providers."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_config] = lambda: payment_config
    app.dependency_overrides[get_delivery_config] = lambda: delivery_config
    app.dependency_overrides[get_dispatch_policy] = lambda: dispatch_policy
    app.dependency_overrides[get_payment_client] = lambda: payment_provider
    app.dependency_overrides[get_delivery_client] = lambda: delivery_provider
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def order_factory(db_session):
    """Insert an order with `parcel_count` parcels directly, bypassing booking."""
    counter = {"n": 0}

    async def create(parcel_count=1, status=OrderStatus.PAID, bulk=None, postal_codes=None):
        counter["n"] += 1
        n = counter["n"]
        bulk = parcel_count > 1 if bulk is None else bulk
        order = Order(
            short_code=f"SPDY{n:010d}",
            sender_name="Sam Sender",
            sender_email="sam@example.com",
            sender_contact_number="+6590000000",
            sender_address="1 Sender Road, 238801",
            delivery_method=DeliveryMethod.ATL,
            amount=Decimal("4.50") * parcel_count,
            status=status,
            dispatch_status=DispatchStatus.NOT_DISPATCHED,
            is_bulk_order=bulk,
        )
        db_session.add(order)
        await db_session.flush()

        bulk_order = None
        if bulk:
            bulk_order = BulkOrder(order_id=order.id, total_parcels=parcel_count, total_weight_kg=3.0 * parcel_count)
            db_session.add(bulk_order)
            await db_session.flush()

        for index in range(parcel_count):
            db_session.add(Parcel(
                order_id=order.id,
                bulk_order_id=bulk_order.id if bulk_order else None,
                short_code=f"SPDY{n:04d}{index + 1:06d}",
                parcel_index=index,
                weight_kg=3.0,
                pricing_tier="T1",
                price=Decimal("4.50"),
                recipient_name=f"Recipient {index + 1}",
                recipient_email=f"r{index + 1}@example.com",
                recipient_contact_number="+6581111111",
                recipient_address=f"{index + 1} Recipient Street, 5200{index:02d}",
                recipient_line1=f"{index + 1} Recipient Street",
                recipient_postal_code=(postal_codes or {}).get(index, f"5200{index:02d}"),
                status=status,
            ))
        await db_session.commit()
        await db_session.refresh(order, attribute_names=["parcels", "bulk_order"])
        return order

    return create
