"""
Test Suite Configuration

Every test gets a fresh in-memory SQLite database. Redis and outgoing email
are disabled; the payment gateway is served by httpx.MockTransport.
"""
import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

from decimal import Decimal
from typing import AsyncGenerator, Dict, List

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.config.settings import EmailSettings, PaymentSettings
from storefront.database.connection import create_session_factory, get_db_dependency
from storefront.database.models import Base, Category, Product, ProductImage, User
from storefront.integrations import EmailService, OzowGateway
from storefront.serving.api import create_api_app
from storefront.serving.api.dependencies import get_mailer, get_payment_gateway
from storefront.services.accounts import create_access_token, hash_password

CUSTOMER_PASSWORD = "secret123"


class FakeOzow:
    """Stands in for the gateway's HTTP API"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503, json={"errorMessage": "Service unavailable"})
        return httpx.Response(
            200,
            json={
                "paymentRequestId": "pr-123",
                "url": "https://pay.ozow.test/pr-123",
                "errorMessage": None,
            },
        )


@pytest.fixture
async def engine():
    """In-memory database engine"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory, catalog, users) -> AsyncGenerator[AsyncSession, None]:
    """Session over the seeded database"""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def catalog(session_factory) -> Dict[str, Product]:
    """
    One category with four products:

    - a: 60.00, stock 10
    - b: 40.00, stock 5
    - c: 25.00, stock 3
    - retired: inactive
    """
    async with session_factory() as session:
        category = Category(name="Furniture", slug="furniture", sort_order=1)
        session.add(category)
        await session.flush()

        subcategory = Category(name="Living Room", slug="living-room", parent_id=category.id, sort_order=1)
        session.add(subcategory)
        await session.flush()

        products = {
            "a": Product(
                name="Oak Table", slug="oak-table", sku="OAK-001",
                price=Decimal("60.00"), stock_quantity=10, category_id=subcategory.id,
                images=[ProductImage(image_url="https://img.test/oak.jpg", is_primary=True)],
            ),
            "b": Product(
                name="Linen Throw", slug="linen-throw", sku="LIN-001",
                price=Decimal("40.00"), stock_quantity=5, category_id=subcategory.id,
                is_featured=True,
            ),
            "c": Product(
                name="Ceramic Vase", slug="ceramic-vase", sku="VAS-001",
                price=Decimal("25.00"), stock_quantity=3, category_id=category.id,
            ),
            "retired": Product(
                name="Retired Lamp", slug="retired-lamp", sku="LMP-001",
                price=Decimal("15.00"), stock_quantity=5, category_id=category.id,
                is_active=False,
            ),
        }
        session.add_all(products.values())
        await session.commit()

    return products


@pytest.fixture
async def users(session_factory) -> Dict[str, User]:
    async with session_factory() as session:
        customer = User(
            email="jane@example.com",
            password_hash=hash_password(CUSTOMER_PASSWORD),
            first_name="Jane",
            last_name="Doe",
        )
        admin = User(
            email="admin@example.com",
            password_hash=hash_password("admin-pass"),
            first_name="Ada",
            last_name="Admin",
            is_admin=True,
        )
        session.add_all([customer, admin])
        await session.commit()

    return {"customer": customer, "admin": admin}


@pytest.fixture
def customer(users) -> User:
    return users["customer"]


@pytest.fixture
def auth_headers(users) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(users['customer'])}"}


@pytest.fixture
def admin_headers(users) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(users['admin'])}"}


@pytest.fixture
def payment_settings() -> PaymentSettings:
    return PaymentSettings(
        site_code="TSTSTE0001",
        api_key="test-api-key",
        private_key="test-private-key",
        base_url="https://api.ozow.test",
    )


@pytest.fixture
def ozow() -> FakeOzow:
    return FakeOzow()


@pytest.fixture
def gateway(payment_settings, ozow) -> OzowGateway:
    return OzowGateway(settings=payment_settings, transport=httpx.MockTransport(ozow))


@pytest.fixture
def mailer() -> EmailService:
    return EmailService(settings=EmailSettings(enabled=False))


@pytest.fixture
def app(session_factory, catalog, users, gateway, mailer):
    """API app wired to the test database and fakes"""
    app = create_api_app()

    async def override_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_dependency] = override_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_mailer] = lambda: mailer
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
