from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libs.common.events import EventBus
from libs.db.base import Base
from libs.db.config import build_engine
from services.payments_service.config import GatewayConfig, PaymentsConfig
from services.payments_service.models import PaymentGateway
from services.payments_service.services.orchestrator import PaymentOrchestrator
from services.payments_service.services.payment_events import (
    register_payment_handlers,
)
from services.store_service.services.order_events import register_order_handlers
from tests.factories import FakeGateway, RecordingNotifier

# Import all models so metadata includes every table
from services.payments_service import models as _payment_models  # noqa: F401
from services.store_service import models as _store_models  # noqa: F401


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    File-backed SQLite engine per test.

    A file (not :memory:) so that separate sessions get separate
    connections and really contend for the write lock.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'shopcore.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def event_bus(notifier) -> EventBus:
    bus = EventBus()
    register_order_handlers(bus, notifier)
    register_payment_handlers(bus, notifier)
    return bus


@pytest.fixture
def payments_config() -> PaymentsConfig:
    return PaymentsConfig(
        stripe=GatewayConfig(enabled=True, currency="USD"),
        paypal=GatewayConfig(enabled=True, currency="USD"),
        paystack=GatewayConfig(enabled=True, currency="NGN"),
        default_gateway=PaymentGateway.STRIPE,
        default_currency="USD",
    )


@pytest.fixture
def fake_gateways() -> dict[PaymentGateway, FakeGateway]:
    return {gateway: FakeGateway(gateway.value) for gateway in PaymentGateway}


@pytest.fixture
def orchestrator(payments_config, fake_gateways) -> PaymentOrchestrator:
    return PaymentOrchestrator(payments_config, gateways=fake_gateways)


@pytest_asyncio.fixture
async def client(
    db_session, event_bus, orchestrator
) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden dependencies.
    """
    from libs.common.dependencies import get_event_bus
    from libs.common.rate_limit import limiter
    from libs.db.session import get_async_db
    from services.gateway_service.app.main import app
    from services.payments_service.dependencies import get_orchestrator

    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
