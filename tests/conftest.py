"""Pytest configuration and fixtures."""

import os

# Point the module-level engine at SQLite before hold_service is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hold_service.db import Base
from hold_service.models import Hold, HoldStatus, OutboxEvent, ProcessedEvent

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def make_hold(session_factory):
    """Insert a hold directly, bypassing the creation engine."""
    counter = {"next": 1000}

    async def _make(status=HoldStatus.AUTHORIZED, expires_at=None, transaction_id=None, amount="100.00"):
        counter["next"] += 1
        async with session_factory() as s:
            hold = Hold(
                transaction_id=transaction_id or counter["next"],
                account_id=1,
                amount=Decimal(amount),
                status=status,
                expires_at=expires_at or NOW + timedelta(days=7),
            )
            s.add(hold)
            await s.commit()
            return hold.hold_id

    return _make


async def fetch_all(session_factory, model):
    async with session_factory() as s:
        return list((await s.execute(select(model))).scalars().all())


async def hold_status(session_factory, hold_id) -> HoldStatus:
    async with session_factory() as s:
        return (await s.get(Hold, hold_id)).status


async def outbox_rows(session_factory):
    return await fetch_all(session_factory, OutboxEvent)


async def processed_rows(session_factory):
    return await fetch_all(session_factory, ProcessedEvent)
