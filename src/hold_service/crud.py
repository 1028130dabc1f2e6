from datetime import datetime
from decimal import Decimal
from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from hold_service.models import (
    Hold,
    HoldStatus,
    OutboxEvent,
    OutboxEventStatus,
    ProcessedEvent,
    ProcessedEventStatus,
)

# --- holds ---------------------------------------------------------------

async def get_hold(session: AsyncSession, hold_id: int) -> Hold | None:
    return await session.get(Hold, hold_id)

async def get_hold_for_update(
    session: AsyncSession,
    hold_id: int,
    skip_locked: bool = False
) -> Hold | None:
    stmt = select(Hold).where(Hold.hold_id == hold_id).with_for_update(skip_locked=skip_locked)
    return (await session.execute(stmt)).scalar_one_or_none()

async def get_hold_by_transaction_id(session: AsyncSession, transaction_id: int) -> Hold | None:
    stmt = select(Hold).where(Hold.transaction_id == transaction_id)
    return (await session.execute(stmt)).scalar_one_or_none()

async def add_hold(
    session: AsyncSession,
    transaction_id: int,
    account_id: int,
    amount: Decimal,
    expires_at: datetime
) -> Hold:
    hold = Hold(
        transaction_id=transaction_id,
        account_id=account_id,
        amount=amount,
        status=HoldStatus.AUTHORIZED,
        expires_at=expires_at,
    )
    session.add(hold)
    await session.flush()  # assigns hold_id
    return hold

async def find_expired_hold_ids(session: AsyncSession, now: datetime) -> List[int]:
    stmt = (
        select(Hold.hold_id)
        .where(Hold.status == HoldStatus.AUTHORIZED, Hold.expires_at < now)
        .order_by(Hold.expires_at, Hold.hold_id)
    )
    return list((await session.execute(stmt)).scalars().all())

# --- outbox --------------------------------------------------------------

async def add_outbox_event(
    session: AsyncSession,
    event_type: str,
    aggregate_id: int,
    payload: str
) -> OutboxEvent:
    event = OutboxEvent(
        event_type=event_type,
        aggregate_id=aggregate_id,
        payload=payload,
        status=OutboxEventStatus.PENDING,
    )
    session.add(event)
    await session.flush()
    return event

async def fetch_pending_event_ids(session: AsyncSession, limit: int) -> List[int]:
    stmt = (
        select(OutboxEvent.event_id)
        .where(OutboxEvent.status == OutboxEventStatus.PENDING)
        .order_by(OutboxEvent.created_at, OutboxEvent.event_id)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars().all())

async def get_pending_event_for_update(session: AsyncSession, event_id: int) -> OutboxEvent | None:
    # SKIP LOCKED: a row claimed by another publisher is left to it.
    stmt = (
        select(OutboxEvent)
        .where(OutboxEvent.event_id == event_id, OutboxEvent.status == OutboxEventStatus.PENDING)
        .with_for_update(skip_locked=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()

def mark_published(session: AsyncSession, event: OutboxEvent, now: datetime) -> None:
    event.status = OutboxEventStatus.PUBLISHED
    event.published_at = now
    session.add(event)

def mark_failed(session: AsyncSession, event: OutboxEvent) -> None:
    event.status = OutboxEventStatus.FAILED
    session.add(event)

# --- processed events ----------------------------------------------------

async def is_event_processed(session: AsyncSession, event_id: str) -> bool:
    stmt = (
        select(ProcessedEvent.id)
        .where(ProcessedEvent.event_id == event_id, ProcessedEvent.status == ProcessedEventStatus.SUCCESS)
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none() is not None

async def is_payload_processed(session: AsyncSession, payload_hash: str) -> bool:
    if not payload_hash:
        return False
    stmt = select(ProcessedEvent.id).where(ProcessedEvent.payload_hash == payload_hash).limit(1)
    return (await session.execute(stmt)).scalar_one_or_none() is not None

async def record_processed_event(
    session: AsyncSession,
    event_id: str,
    payload_hash: str,
    status: ProcessedEventStatus
) -> ProcessedEvent:
    record = ProcessedEvent(event_id=event_id, payload_hash=payload_hash, status=status)
    session.add(record)
    await session.flush()
    return record
