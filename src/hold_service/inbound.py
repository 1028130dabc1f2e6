"""Idempotent processing of inbound transaction lifecycle events.

Deliveries are at-least-once. A delivery is skipped when the ledger already
holds a SUCCESS row for its event id, or any row for its payload hash. The
payload hash is what makes redelivery safe across restarts, since event ids
are only stable when the transport supplies a message id.

The hold read, the transition, the hold write and the SUCCESS row share one
transaction with the hold row locked. Failures roll that transaction back,
leave a FAILED row behind and propagate to the transport.
"""

import enum
import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hold_service import crud
from hold_service.errors import HoldNotFoundError, HoldValidationError, PayloadSerializationError
from hold_service.events import TransactionEventKind
from hold_service.ids import canonical_json, generate_event_id, generate_payload_hash
from hold_service.lifecycle import SIGNAL_BY_KIND, transition
from hold_service.models import HoldStatus, ProcessedEventStatus
from hold_service.schemas import TransactionEvent

logger = logging.getLogger("holds.inbound")


class ProcessOutcome(str, enum.Enum):
    APPLIED = "APPLIED"
    UNCHANGED = "UNCHANGED"
    DUPLICATE_EVENT = "DUPLICATE_EVENT"
    DUPLICATE_PAYLOAD = "DUPLICATE_PAYLOAD"


@dataclass(frozen=True)
class ProcessResult:
    event_id: str
    outcome: ProcessOutcome
    status: HoldStatus | None = None

    @property
    def duplicate(self) -> bool:
        return self.outcome in (ProcessOutcome.DUPLICATE_EVENT, ProcessOutcome.DUPLICATE_PAYLOAD)


def normalize_payload(kind: TransactionEventKind, event: TransactionEvent) -> str:
    """Canonical JSON of the (kind, transactionId, holdId) key of an event.

    Only the fields declared on ``TransactionEvent`` survive parsing, so the
    digest is over that key rather than the raw delivery body. The kind is
    part of it so that an authorized and a failed event for the same
    transaction and hold never dedup against each other.
    """
    try:
        data = event.model_dump(mode="json", by_alias=True)
        data["eventType"] = TransactionEventKind(kind).value
        return canonical_json(data)
    except (TypeError, ValueError) as e:
        raise PayloadSerializationError("Failed to serialize event payload") from e


class TransactionEventService:

    async def process_event(
        self,
        session: AsyncSession,
        kind: TransactionEventKind,
        event: TransactionEvent,
        delivery_id: str | None = None,
    ) -> ProcessResult:
        kind = TransactionEventKind(kind)
        if event.hold_id is None:
            raise HoldValidationError(f"{kind.value} event for transaction {event.transaction_id} has no holdId")

        event_id = generate_event_id(kind.value, event.transaction_id, delivery_id)

        if await crud.is_event_processed(session, event_id):
            await session.rollback()
            logger.info("Event %s has already been processed, skipping", event_id)
            return ProcessResult(event_id, ProcessOutcome.DUPLICATE_EVENT)

        try:
            payload_hash = generate_payload_hash(normalize_payload(kind, event))
        except PayloadSerializationError:
            logger.exception("Failed to serialize event payload for transaction: %s", event.transaction_id)
            await self._record_failure(session, event_id)
            raise

        if await crud.is_payload_processed(session, payload_hash):
            await session.rollback()
            logger.info("Payload with hash %s has already been processed, skipping", payload_hash)
            return ProcessResult(event_id, ProcessOutcome.DUPLICATE_PAYLOAD)

        try:
            return await self._apply(session, kind, event, event_id, payload_hash)
        except IntegrityError:
            # a concurrent delivery committed the same payload first
            await session.rollback()
            logger.info("Payload with hash %s was processed concurrently, skipping", payload_hash)
            return ProcessResult(event_id, ProcessOutcome.DUPLICATE_PAYLOAD)
        except Exception:
            logger.exception("Failed to process %s event for transaction: %s", kind.value, event.transaction_id)
            await self._record_failure(session, event_id)
            raise

    async def _apply(
        self,
        session: AsyncSession,
        kind: TransactionEventKind,
        event: TransactionEvent,
        event_id: str,
        payload_hash: str,
    ) -> ProcessResult:
        hold = await crud.get_hold_for_update(session, event.hold_id)
        if hold is None:
            raise HoldNotFoundError(event.hold_id)

        # re-check under the row lock; the first check ran unlocked
        if await crud.is_payload_processed(session, payload_hash):
            await session.rollback()
            logger.info("Payload with hash %s has already been processed, skipping", payload_hash)
            return ProcessResult(event_id, ProcessOutcome.DUPLICATE_PAYLOAD)

        result = transition(hold.status, SIGNAL_BY_KIND[kind])
        if result.changed:
            logger.info("Updating hold %s status %s -> %s", hold.hold_id, hold.status.value, result.status.value)
            hold.status = result.status
            session.add(hold)
        else:
            logger.info("Hold %s is already %s, no update needed", hold.hold_id, hold.status.value)

        await crud.record_processed_event(session, event_id, payload_hash, ProcessedEventStatus.SUCCESS)
        await session.commit()

        logger.info("Successfully processed %s event for transaction: %s", kind.value, event.transaction_id)
        outcome = ProcessOutcome.APPLIED if result.changed else ProcessOutcome.UNCHANGED
        return ProcessResult(event_id, outcome, result.status)

    async def _record_failure(self, session: AsyncSession, event_id: str) -> None:
        await session.rollback()
        try:
            await crud.record_processed_event(session, event_id, "", ProcessedEventStatus.FAILED)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            logger.exception("Could not record FAILED marker for event %s", event_id)
