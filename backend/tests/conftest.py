"""
Pytest fixtures for test database, client, users and collaborators.

Each test gets its own SQLite database file (aiosqlite) with fresh tables.
The payment gateway is replaced by an in-memory fake and notifications go
through the real DatabaseNotificationSink on a separate session factory.
"""

import os

# Must be set before app modules read settings
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from dataclasses import replace
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.exceptions import UpstreamError
from app.core.security import Actor, create_access_token, hash_password
from app.models.booking import Booking
from app.models.notification import Notification
from app.models.user import User, UserRole
from app.services.gateway_factory import get_payment_gateway
from app.services.interfaces.notification_sink import NotificationMessage, NotificationSink
from app.services.interfaces.payment_gateway import PaymentGateway, PaymentIntent
from app.services.notification_service import DatabaseNotificationSink, get_notification_sink


class FakePaymentGateway(PaymentGateway):
    """In-memory stand-in for Stripe. Intents start unpaid; tests call settle()."""

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.created: list[dict] = []
        self.canceled: list[str] = []
        self.retrieve_calls = 0
        self.fail_create = False
        self.fail_retrieve = False

    async def create_intent(self, amount_minor: int, currency: str, metadata: dict) -> PaymentIntent:
        if self.fail_create:
            raise UpstreamError("Payment provider rejected the payment intent")
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = PaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret_abc",
            metadata=dict(metadata),
        )
        self.intents[intent_id] = intent
        self.created.append({"amount_minor": amount_minor, "currency": currency, "metadata": metadata})
        return replace(intent)

    async def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self.retrieve_calls += 1
        if self.fail_retrieve:
            raise UpstreamError("Could not verify payment with the payment provider")
        return replace(self.intents[intent_id])

    async def cancel_intent(self, intent_id: str) -> PaymentIntent:
        intent = self.intents[intent_id]
        if intent.status == "succeeded":
            raise UpstreamError("Payment provider could not cancel the payment intent")
        intent.status = "canceled"
        self.canceled.append(intent_id)
        return replace(intent)

    def settle(self, intent_id: str, status: str = "succeeded") -> None:
        self.intents[intent_id].status = status


class FailingNotificationSink(NotificationSink):
    def __init__(self):
        self.attempts = 0

    async def notify(self, message: NotificationMessage) -> None:
        self.attempts += 1
        raise RuntimeError("notification store is down")


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database per test; NullPool so no connection outlives its event loop."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notification_sink(session_factory) -> NotificationSink:
    return DatabaseNotificationSink(session_factory)


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    notification_sink: NotificationSink,
    payment_gateway: FakePaymentGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session, notification sink and gateway overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sink] = lambda: notification_sink
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db: AsyncSession, username: str, role: UserRole) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        full_name=username.replace("_", " ").title(),
        role=role.value,
        hashed_password=hash_password("testpassword123"),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role)


@pytest_asyncio.fixture
async def client_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "test_client", UserRole.CLIENT)


@pytest_asyncio.fixture
async def vendor_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "test_vendor", UserRole.VENDOR)


@pytest_asyncio.fixture
async def other_vendor(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other_vendor", UserRole.VENDOR)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "test_admin", UserRole.ADMIN)


@pytest.fixture
def client_headers(client_user: User) -> dict:
    return headers_for(client_user)


@pytest.fixture
def vendor_headers(vendor_user: User) -> dict:
    return headers_for(vendor_user)


@pytest.fixture
def other_vendor_headers(other_vendor: User) -> dict:
    return headers_for(other_vendor)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest_asyncio.fixture
async def pending_booking(db_session: AsyncSession, client_user: User, vendor_user: User) -> Booking:
    """A PENDING booking with a budget of 500."""
    booking = Booking(
        client_id=client_user.id,
        vendor_id=vendor_user.id,
        service_type="Catering",
        event_date=datetime.now(timezone.utc) + timedelta(days=30),
        event_location="London",
        guests=80,
        budget=Decimal("500.00"),
    )
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking


async def notifications_for(db: AsyncSession, user_id: int, type_: str = None) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if type_:
        query = query.where(Notification.type == type_)
    result = await db.execute(query.order_by(Notification.id))
    return list(result.scalars().all())
