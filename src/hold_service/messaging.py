import asyncio
import logging
from aio_pika import DeliveryMode, ExchangeType, Message, connect_robust
from aio_pika.abc import AbstractExchange, AbstractRobustConnection, AbstractRobustChannel
from hold_service.config import settings
from hold_service.events import EVENT_TYPE_HEADER, KEY_HEADER, TransactionEventKind

logger = logging.getLogger("holds.messaging")

QUEUE_PREFIX = "hold-service"

rabbit_connection: AbstractRobustConnection | None = None
rabbit_channel:    AbstractRobustChannel     | None = None

def queue_name(kind: TransactionEventKind) -> str:
    return f"{QUEUE_PREFIX}.{kind.value}"

async def init_rabbit(
    retry_attempts: int = settings.RABBIT_CONNECT_ATTEMPTS,
    retry_delay: int = settings.RABBIT_CONNECT_DELAY
) -> None:
    global rabbit_connection, rabbit_channel

    for attempt in range(1, retry_attempts + 1):
        try:
            logger.info("[Holds] Connecting to RabbitMQ (attempt %d/%d)", attempt, retry_attempts)
            rabbit_connection = await connect_robust(settings.rabbit_url)
            rabbit_channel    = await rabbit_connection.channel()
            await rabbit_channel.set_qos(prefetch_count=settings.INBOX_PREFETCH_COUNT)

            await rabbit_channel.declare_exchange(
                settings.HOLD_EVENTS_EXCHANGE, ExchangeType.TOPIC, durable=True
            )
            inbound = await rabbit_channel.declare_exchange(
                settings.TRANSACTION_EVENTS_EXCHANGE, ExchangeType.TOPIC, durable=True
            )
            for kind in TransactionEventKind:
                queue = await rabbit_channel.declare_queue(queue_name(kind), durable=True)
                await queue.bind(inbound, routing_key=kind.value)

            logger.info("[Holds] RabbitMQ setup complete")
            return
        except Exception as e:
            logger.error("[Holds] RabbitMQ init failed: %s", e)
            if attempt < retry_attempts:
                await asyncio.sleep(retry_delay)
            else:
                logger.critical("[Holds] Could not connect to RabbitMQ, giving up")
                raise

async def get_channel() -> AbstractRobustChannel:
    if rabbit_channel is None:
        await init_rabbit()
    return rabbit_channel

async def get_hold_events_exchange() -> AbstractExchange:
    channel = await get_channel()
    return await channel.declare_exchange(
        settings.HOLD_EVENTS_EXCHANGE, ExchangeType.TOPIC, durable=True
    )

async def close_rabbit() -> None:
    global rabbit_connection, rabbit_channel
    if rabbit_connection:
        await rabbit_connection.close()
        rabbit_connection = None
        rabbit_channel = None
        logger.info("[Holds] RabbitMQ connection closed")


class StreamPublisher:
    """Publishes outbox payloads to the hold events exchange.

    The routing key is the event type; the hold id travels in the ``key``
    header so consumers can partition by hold.
    """

    def __init__(self, exchange: AbstractExchange):
        self.exchange = exchange

    async def publish(self, key: str, payload: str, event_type: str, message_id: str | None = None) -> bool:
        if not key:
            logger.warning("[Holds] Refusing to publish %s without a key", event_type)
            return False
        if not payload:
            logger.warning("[Holds] Refusing to publish %s for key %s without a payload", event_type, key)
            return False
        if not event_type:
            logger.warning("[Holds] Refusing to publish key %s without an event type", key)
            return False

        message = Message(
            body=payload.encode(),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            message_id=message_id,
            headers={KEY_HEADER: key, EVENT_TYPE_HEADER: event_type},
        )
        await self.exchange.publish(message, routing_key=event_type)
        logger.debug("[Holds] Published %s for key %s", event_type, key)
        return True
