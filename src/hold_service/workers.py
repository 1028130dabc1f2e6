import asyncio
import logging

from aio_pika.abc import AbstractIncomingMessage
from pydantic import ValidationError

from hold_service.config import settings
from hold_service.db import AsyncSessionLocal
from hold_service.errors import error_kind
from hold_service.events import TransactionEventKind, get_event_type
from hold_service.messaging import get_channel, queue_name
from hold_service.schemas import TransactionEvent

logger = logging.getLogger("holds.workers")

async def transaction_event_consumer(kind: TransactionEventKind, processor, session_factory=AsyncSessionLocal):
    channel = await get_channel()
    queue = await channel.declare_queue(queue_name(kind), durable=True)

    logger.info("[Holds] Starting consumer for '%s' on queue '%s'", kind.value, queue.name)
    async with queue.iterator() as it:
        async for message in it:
            try:
                await handle_transaction_message(kind, processor, message, session_factory)
            except Exception as e:
                # already rejected by message.process(); the broker decides on redelivery
                logger.error("[Holds] %s delivery %s failed: %s", kind.value, message.message_id, e)

async def handle_transaction_message(
    kind: TransactionEventKind,
    processor,
    message: AbstractIncomingMessage,
    session_factory=AsyncSessionLocal
) -> None:
    """Decode one delivery and hand it to the processor.

    Acked on success and on deliberate drops. Processing errors reject the
    message, requeueing it once; a second failure leaves it to dead-lettering.
    """
    async with message.process(requeue=True, reject_on_redelivered=True, ignore_processed=True):
        event_type = get_event_type(message.headers)
        if event_type is not None and event_type != kind.value:
            logger.warning("[Holds] Skipping message with eventType %s on %s queue", event_type, kind.value)
            return

        body = message.body.decode(errors="replace")
        logger.info("[Holds] Received %s event: %s", kind.value, body)
        try:
            event = TransactionEvent.model_validate_json(body)
        except ValidationError as e:
            logger.error("[Holds] Invalid %s message format: %s", kind.value, e)
            await message.reject(requeue=False)
            return

        if event.hold_id is None:
            logger.warning("[Holds] %s event for transaction %s has no holdId, dropping",
                           kind.value, event.transaction_id)
            return

        try:
            async with session_factory() as session:
                result = await processor.process_event(session, kind, event, delivery_id=message.message_id)
        except Exception as e:
            logger.error("[Holds] %s for hold %s failed with %s error: %s",
                         kind.value, event.hold_id, error_kind(e).value, e)
            raise
        logger.info("[Holds] %s for hold %s: %s", kind.value, event.hold_id, result.outcome.value)

async def outbox_publisher(relay, session_factory=AsyncSessionLocal, interval: float = settings.OUTBOX_POLL_INTERVAL):
    while True:
        try:
            async with session_factory() as session:
                await relay.drain(session)
        except Exception:
            logger.exception("[Holds] Outbox publishing cycle failed")

        await asyncio.sleep(interval)

async def hold_expiry_scheduler(
    hold_service,
    session_factory=AsyncSessionLocal,
    interval: float = settings.HOLD_EXPIRY_CHECK_INTERVAL
):
    while True:
        logger.debug("[Holds] Starting hold expiry check")
        try:
            async with session_factory() as session:
                await hold_service.expire_holds(session)
        except Exception:
            logger.exception("[Holds] Error occurred during hold expiry processing")
        logger.debug("[Holds] Completed hold expiry check")

        await asyncio.sleep(interval)
