"""Pytest fixtures for FTMS payroll tests."""

from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from ftms_payroll.config import Settings
from ftms_payroll.database import Database
from ftms_payroll.integrations.audit_client import Actor, AuditLogClient, RequestContext
from ftms_payroll.integrations.outbound import OutboundDispatcher
from ftms_payroll.services.payroll_period_service import PayrollPeriodService
from tests.factories import AuditRecorder, FakeHRClient, FakeHRSource, make_settings


@pytest.fixture
def settings() -> Settings:
    # In-memory SQLite; each test gets its own engine and therefore its own database
    return make_settings()


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Fresh schema per test."""
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def actor() -> Actor:
    return Actor(id="user-1", name="Ana Admin", role="admin")


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(ip_address="10.0.0.5", user_agent="pytest")


@pytest.fixture
def hr_source() -> FakeHRSource:
    return FakeHRSource()


@pytest.fixture
def hr_client() -> FakeHRClient:
    return FakeHRClient()


@pytest.fixture
def audit_recorder() -> AuditRecorder:
    return AuditRecorder()


@pytest_asyncio.fixture
async def dispatcher(database: Database) -> AsyncGenerator[OutboundDispatcher, None]:
    dispatcher = OutboundDispatcher(session_factory=database.session_factory)
    yield dispatcher
    await dispatcher.drain()


@pytest_asyncio.fixture
async def audit(
    settings: Settings, dispatcher: OutboundDispatcher, audit_recorder: AuditRecorder
) -> AsyncGenerator[AuditLogClient, None]:
    client = AuditLogClient.from_settings(
        settings, dispatcher, transport=httpx.MockTransport(audit_recorder)
    )
    yield client
    await dispatcher.drain()
    await client.close()


@pytest.fixture
def service(
    session: AsyncSession,
    settings: Settings,
    hr_source: FakeHRSource,
    hr_client: FakeHRClient,
    audit: AuditLogClient,
) -> PayrollPeriodService:
    return PayrollPeriodService(
        session, settings, hr_source=hr_source, hr_client=hr_client, audit=audit
    )
