"""Shared test fixtures for the marketplace API tests.

Uses an in-memory SQLite async engine so tests run without PostgreSQL.
Payment gateways are real client objects with test credentials; tests
patch their outbound calls.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.core.auth import create_access_token
from marketplace.core.database import Base, get_db
from marketplace.core.deps import get_payfast_gateway, get_yoco_gateway
from marketplace.main import app
from marketplace.services.payments.payfast import PayFastGateway
from marketplace.services.payments.yoco import YocoGateway

# Import all models to ensure they're registered with Base.metadata
from marketplace.models.user import User, Shop, UserType
from marketplace.models.service import Service
from marketplace.models.order import Order  # noqa: F401
from marketplace.models.appointment import Appointment, RecurringAppointment  # noqa: F401
from marketplace.models.payment import Payment  # noqa: F401
from marketplace.models.wallet import Wallet, Transaction  # noqa: F401
from marketplace.models.notification import Notification  # noqa: F401


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

PAYFAST_MERCHANT_ID = "10000100"
PAYFAST_MERCHANT_KEY = "46f0cd694581a"
PAYFAST_PASSPHRASE = "jt7NOE43FZPn"


@pytest_asyncio.fixture(autouse=True)
async def session_factory():
    """Fresh database per test, wired into the app's get_db dependency."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.pop(get_db, None)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(autouse=True)
def yoco_gateway():
    gateway = YocoGateway(secret_key="sk_test_123", public_key="pk_test_123")
    app.dependency_overrides[get_yoco_gateway] = lambda: gateway
    yield gateway
    app.dependency_overrides.pop(get_yoco_gateway, None)


@pytest.fixture(autouse=True)
def payfast_gateway():
    gateway = PayFastGateway(
        merchant_id=PAYFAST_MERCHANT_ID,
        merchant_key=PAYFAST_MERCHANT_KEY,
        passphrase=PAYFAST_PASSPHRASE,
        sandbox=True,
        enforce_ip=False,
    )
    app.dependency_overrides[get_payfast_gateway] = lambda: gateway
    yield gateway
    app.dependency_overrides.pop(get_payfast_gateway, None)


@pytest_asyncio.fixture
async def client():
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(session_factory):
    """Direct DB session for test setup/assertions."""
    async with session_factory() as session:
        yield session


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def customer(db):
    user = User(
        email="customer@example.com",
        username="Customer",
        user_type=UserType.CLIENT,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def provider(db):
    user = User(
        email="provider@example.com",
        username="Provider",
        picture="https://cdn.example.com/provider.png",
        user_type=UserType.SERVICE_PROVIDER,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    db.add(Shop(owner_id=user.id, name="Sparkle Cleaning"))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def service(db, provider):
    svc = Service(
        provider_id=provider.id,
        name="Home Cleaning",
        price=Decimal("350.00"),
        is_active=True,
    )
    db.add(svc)
    await db.commit()
    return svc


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def provider_headers(provider):
    return auth_headers(provider)
