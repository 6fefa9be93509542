"""Pytest configuration and fixtures."""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dern_support.config import Settings
from dern_support.core.models import Base, SupportRequest, User, UserType
from dern_support.scheduling.locks import TechnicianLocks
from dern_support.scheduling.models import Actor
from dern_support.scheduling.notifier import NotificationMessage, Notifier
from dern_support.scheduling.service import SchedulingService

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000ad")
TECH_A_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
TECH_B_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
CUSTOMER_ID = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")
REQUEST_ID = uuid.UUID("dddddddd-dddd-dddd-dddd-dddddddddddd")

REQUEST_LOCATION = {"address": "1 Main St", "city": "Springfield", "country": "US"}


def at(hour: int, minute: int = 0, day: int = 6) -> datetime:
    """A UTC timestamp on April ``day``, 2026."""
    return datetime(2026, 4, day, hour, minute, tzinfo=timezone.utc)


class FakeNotifier(Notifier):
    """Records notifications instead of storing them."""

    def __init__(self, fail: bool = False):
        self.sent: list[NotificationMessage] = []
        self.fail = fail

    async def notify(self, notification: NotificationMessage) -> None:
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append(notification)

    def titles_for(self, user_id: uuid.UUID) -> list[str]:
        return [n.title for n in self.sent if n.user_id == user_id]


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess


async def seed_users(session: AsyncSession) -> dict:
    """Admin, two technicians, a customer and one open support request."""
    admin = User(
        id=ADMIN_ID, email="admin@dern.test", first_name="Ada", last_name="Admin",
        user_type=UserType.admin.value,
    )
    tech_a = User(
        id=TECH_A_ID, email="alice@dern.test", first_name="Alice", last_name="Tech",
        user_type=UserType.technician.value, phone="555-0101",
    )
    tech_b = User(
        id=TECH_B_ID, email="bob@dern.test", first_name="Bob", last_name="Tech",
        user_type=UserType.technician.value,
    )
    customer = User(
        id=CUSTOMER_ID, email="carol@acme.test", first_name="Carol", last_name="Customer",
        company="Acme", user_type=UserType.customer.value,
    )
    request = SupportRequest(
        id=REQUEST_ID,
        user_id=CUSTOMER_ID,
        title="Printer offline",
        description="Office printer does not respond",
        request_type="hardware",
        priority="high",
        location=REQUEST_LOCATION,
    )
    session.add_all([admin, tech_a, tech_b, customer, request])
    await session.commit()
    return {
        "admin": admin,
        "tech_a": tech_a,
        "tech_b": tech_b,
        "customer": customer,
        "request": request,
    }


@pytest.fixture
async def seed_data(session: AsyncSession) -> dict:
    return await seed_users(session)


# ---------------------------------------------------------------------------
# Actors and service
# ---------------------------------------------------------------------------

@pytest.fixture
def admin_actor() -> Actor:
    return Actor(id=ADMIN_ID, role=UserType.admin)


@pytest.fixture
def tech_actor() -> Actor:
    return Actor(id=TECH_A_ID, role=UserType.technician)


@pytest.fixture
def other_tech_actor() -> Actor:
    return Actor(id=TECH_B_ID, role=UserType.technician)


@pytest.fixture
def customer_actor() -> Actor:
    return Actor(id=CUSTOMER_ID, role=UserType.customer)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def make_service(session: AsyncSession, notifier: FakeNotifier):
    """Build a SchedulingService over the test session with optional settings."""

    def _make(**settings_overrides) -> SchedulingService:
        return SchedulingService(
            session,
            notifier=notifier,
            locks=TechnicianLocks(),
            settings=Settings(**settings_overrides),
        )

    return _make


@pytest.fixture
def service(make_service, seed_data) -> SchedulingService:
    return make_service()
