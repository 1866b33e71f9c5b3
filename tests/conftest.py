"""Pytest configuration and fixtures."""
import os

# Must be set before payrail.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SETTLEMENT_LISTENER_ENABLED", "false")

from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from httpx import AsyncClient, ASGITransport

from stacks_api_adapter import ChainTxStatus

from payrail.config import Settings
from payrail.database import Base
from payrail.models.disbursement import Disbursement, DisbursementKind, DisbursementStatus
from payrail.services.ports import NotificationResult, RecipientIdentity

from tests.fakes import ALICE, BOB, CAROL, BATCH_TX, FakeChain, FakeIdentityStore, transfer


# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    """Settings with a fast confirmation budget."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        confirmation_max_attempts=3,
        confirmation_interval_ms=0,
        organization_name="Acme Labs",
        settlement_listener_enabled=False,
    )


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier that always reports success."""
    mock = AsyncMock()
    mock.notify_disbursed.return_value = NotificationResult(sent=True)
    return mock


@pytest.fixture
def identity_store() -> FakeIdentityStore:
    return FakeIdentityStore({
        ALICE: RecipientIdentity(address=ALICE, display_name="Alice Nakamoto", contact_email="alice@example.com"),
        BOB: RecipientIdentity(address=BOB, display_name="Bob Builder", contact_email="bob@example.com"),
        CAROL: RecipientIdentity(address=CAROL, display_name="Carol Danvers", contact_email="carol@example.com"),
    })


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def make_disbursement(db_session: AsyncSession):
    """Factory persisting a disbursement in a given status."""

    async def _make(
        transaction_id: str = BATCH_TX,
        kind: DisbursementKind = DisbursementKind.BATCH,
        declared_total: int = 400,
        status: DisbursementStatus = DisbursementStatus.BROADCAST,
        recipient_address: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> Disbursement:
        disbursement = Disbursement(
            transaction_id=transaction_id,
            kind=kind,
            declared_total=declared_total,
            period_reference="2026-09" if kind == DisbursementKind.BATCH else None,
            recipient_address=recipient_address,
            organization_id=organization_id,
            status=status,
        )
        db_session.add(disbursement)
        await db_session.commit()
        await db_session.refresh(disbursement, ["legs"])
        return disbursement

    return _make


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, notifier: AsyncMock, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with fake chain and notifier."""
    from payrail.main import app
    from payrail.config import get_settings
    from payrail.database import get_db
    from payrail.api.deps import get_chain_client, get_notifier

    chain = FakeChain(
        statuses=[ChainTxStatus.SUCCESS],
        events={BATCH_TX: [transfer(ALICE, 100, 0), transfer(BOB, 250, 1)]},
    )

    # Override database dependency
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_chain_client] = lambda: chain
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        client.chain = chain
        yield client

    app.dependency_overrides.clear()
