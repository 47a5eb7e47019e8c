"""Shared fixtures: in-memory database, fake collaborators, catalog rows."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import snapfest.models  # noqa: F401
from snapfest.core.immutability import register_immutability_enforcement
from snapfest.database import Base
from snapfest.gateways.base import GatewayType
from snapfest.models.catalog import BeatBloom, Package
from snapfest.models.vendor import Vendor
from snapfest.services.assignment_service import AssignmentService
from snapfest.services.audit_service import AuditService
from snapfest.services.booking_service import BookingService
from snapfest.services.completion_service import CompletionService
from snapfest.services.gateway_service import GatewayService
from snapfest.services.payment_service import PaymentService
from snapfest.services.refund_service import RefundService
from snapfest.services.vendor_directory import VendorDirectory
from tests.factories import FakeGateway, FakeNotifier, Services, make_vendor, package_kwargs

register_immutability_enforcement()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_session_maker(tmp_path):
    """Sessions on separate connections to one SQLite file, for write races."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'snapfest.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def services(notifier, fake_gateway) -> Services:
    audit = AuditService()
    gateways = GatewayService({GatewayType.MANUAL: fake_gateway})
    payment = PaymentService(gateways=gateways, notifier=notifier, audit=audit, retry_attempts=3)
    return Services(
        notifier=notifier,
        gateway=fake_gateway,
        booking=BookingService(notifier=notifier, audit=audit, partial_payment_fraction=0.20, travel_fee=0),
        payment=payment,
        assignment=AssignmentService(directory=VendorDirectory(), notifier=notifier, audit=audit),
        completion=CompletionService(notifier=notifier, audit=audit, otp_ttl=timedelta(minutes=10)),
        refund=RefundService(gateways=gateways, payments=payment, notifier=notifier, audit=audit),
    )


@pytest.fixture
async def package(db) -> Package:
    package = Package(**package_kwargs())
    db.add(package)
    await db.flush()
    return package


@pytest.fixture
async def beat_bloom(db) -> BeatBloom:
    item = BeatBloom(title="Live Band", category="ENTERTAINMENT", price=12000)
    db.add(item)
    await db.flush()
    return item


@pytest.fixture
async def vendor(db) -> Vendor:
    return await make_vendor(db)
