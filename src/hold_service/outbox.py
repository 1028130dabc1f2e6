import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from hold_service import crud
from hold_service.errors import PublishError
from hold_service.lifecycle import utcnow
from hold_service.models import OutboxEvent

logger = logging.getLogger("holds.outbox")


@dataclass
class DrainSummary:
    fetched: int = 0
    published: int = 0
    failed: int = 0
    skipped: int = 0


class OutboxRelay:
    """Drains PENDING outbox rows to the transport.

    Each row is claimed with ``FOR UPDATE SKIP LOCKED`` and settled in its own
    transaction. A publish failure marks the row FAILED and is not retried
    here.
    """

    def __init__(self, publisher, batch_size: int = 10, clock: Callable = utcnow):
        self.publisher = publisher
        self.batch_size = batch_size
        self.clock = clock

    async def drain(self, session: AsyncSession, batch_size: int | None = None) -> DrainSummary:
        summary = DrainSummary()
        event_ids = await crud.fetch_pending_event_ids(session, batch_size or self.batch_size)
        await session.rollback()
        summary.fetched = len(event_ids)
        if event_ids:
            logger.info("Found %d pending outbox events", summary.fetched)

        for event_id in event_ids:
            try:
                event = await crud.get_pending_event_for_update(session, event_id)
                if event is None:
                    await session.rollback()
                    summary.skipped += 1
                    continue

                if await self._publish(event):
                    crud.mark_published(session, event, self.clock())
                    summary.published += 1
                else:
                    crud.mark_failed(session, event)
                    summary.failed += 1
                await session.commit()
            except Exception:
                await session.rollback()
                summary.failed += 1
                logger.exception("Failed to settle outbox event %s", event_id)

        if event_ids:
            logger.info(
                "Outbox drain complete: %d published, %d failed, %d skipped",
                summary.published, summary.failed, summary.skipped,
            )
        return summary

    async def _publish(self, event: OutboxEvent) -> bool:
        key = str(event.aggregate_id) if event.aggregate_id is not None else ""
        try:
            if not await self.publisher.publish(key, event.payload, event.event_type, message_id=str(event.event_id)):
                raise PublishError(f"Publisher rejected outbox event {event.event_id}")
        except Exception:
            logger.exception("Failed to publish outbox event %s (%s)", event.event_id, event.event_type)
            return False
        return True
