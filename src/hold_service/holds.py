import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hold_service import crud
from hold_service.errors import ErrorKind, PayloadSerializationError
from hold_service.events import HOLD_CREATED, HOLD_EXPIRED
from hold_service.fraud import AmountLimitFraudCheck
from hold_service.lifecycle import HoldSignal, is_expiry_due, transition, utcnow
from hold_service.models import Hold, HoldStatus
from hold_service.schemas import CreateHoldRequest, HoldCreatedPayload, HoldExpiredPayload

logger = logging.getLogger("holds.service")

DEFAULT_FRAUD_LIMIT = Decimal("10000.00")
DEFAULT_EXPIRY_HORIZON = timedelta(days=7)


@dataclass(frozen=True)
class CreateHoldResult:
    hold_id: int | None = None
    status: HoldStatus | None = None
    replayed: bool = False
    error_kind: ErrorKind | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def rejected(cls, reason: str) -> "CreateHoldResult":
        return cls(error_kind=ErrorKind.VALIDATION, reason=reason)


@dataclass
class ExpirySummary:
    found: int = 0
    expired: int = 0
    skipped: int = 0
    failed: int = 0


class HoldService:
    """Creates holds and expires stale ones.

    Both paths write the hold change and its outbox row in one transaction.
    """

    def __init__(
        self,
        fraud_check: Callable[[Decimal], str | None] | None = None,
        expiry_horizon: timedelta = DEFAULT_EXPIRY_HORIZON,
        clock: Callable = utcnow,
    ):
        self.fraud_check = fraud_check or AmountLimitFraudCheck(DEFAULT_FRAUD_LIMIT)
        self.expiry_horizon = expiry_horizon
        self.clock = clock

    async def create_hold(self, session: AsyncSession, request: CreateHoldRequest) -> CreateHoldResult:
        replay = await self._find_existing(session, request.transaction_id)
        if replay:
            logger.info("Hold %s already exists for transaction %s", replay.hold_id, request.transaction_id)
            return replay

        reason = self._validate(request)
        if reason:
            await session.rollback()
            logger.warning("Rejected hold for transaction %s: %s", request.transaction_id, reason)
            return CreateHoldResult.rejected(reason)

        try:
            hold = await crud.add_hold(
                session,
                transaction_id=request.transaction_id,
                account_id=request.issuer_account_id,
                amount=request.amount,
                expires_at=self.clock() + self.expiry_horizon,
            )
            payload = _serialize(HoldCreatedPayload(
                hold_id=hold.hold_id,
                transaction_id=request.transaction_id,
                issuer_account_id=request.issuer_account_id,
                merchant_account_id=request.merchant_account_id,
                amount=request.amount,
                currency=request.currency,
                status=hold.status,
                expires_at=hold.expires_at,
            ))
            await crud.add_outbox_event(session, HOLD_CREATED, hold.hold_id, payload)
            await session.commit()
        except IntegrityError:
            # lost a race with a concurrent create for the same transaction
            await session.rollback()
            replay = await self._find_existing(session, request.transaction_id)
            if replay is None:
                raise
            return replay
        except Exception:
            await session.rollback()
            raise

        logger.info("Created hold %s for transaction %s", hold.hold_id, request.transaction_id)
        return CreateHoldResult(hold_id=hold.hold_id, status=hold.status)

    async def _find_existing(self, session: AsyncSession, transaction_id: int) -> CreateHoldResult | None:
        existing = await crud.get_hold_by_transaction_id(session, transaction_id)
        if existing is None:
            return None
        result = CreateHoldResult(hold_id=existing.hold_id, status=existing.status, replayed=True)
        await session.rollback()
        return result

    def _validate(self, request: CreateHoldRequest) -> str | None:
        if request.amount is None or request.amount <= 0:
            return "Amount must be positive"
        if request.issuer_account_id is None or request.merchant_account_id is None:
            return "Account ids are required"
        return self.fraud_check(request.amount)

    async def expire_holds(self, session: AsyncSession) -> ExpirySummary:
        """Move every past-due AUTHORIZED hold to EXPIRED.

        Each hold is handled in its own transaction: the row is re-read under
        a lock and re-checked, so a failure or a concurrent sweep only affects
        that one hold. Holds that fail stay AUTHORIZED and are retried on the
        next sweep.
        """
        now = self.clock()
        summary = ExpirySummary()
        hold_ids = await crud.find_expired_hold_ids(session, now)
        await session.rollback()
        summary.found = len(hold_ids)
        logger.info("Found %d expired holds to process", summary.found)

        for hold_id in hold_ids:
            try:
                if await self._expire_one(session, hold_id, now):
                    summary.expired += 1
                else:
                    summary.skipped += 1
            except Exception:
                await session.rollback()
                summary.failed += 1
                logger.exception("Failed to expire hold with ID: %s", hold_id)
        return summary

    async def _expire_one(self, session: AsyncSession, hold_id: int, now) -> bool:
        hold = await crud.get_hold_for_update(session, hold_id, skip_locked=True)
        if hold is None or not is_expiry_due(hold.expires_at, now):
            await session.rollback()
            return False

        result = transition(hold.status, HoldSignal.EXPIRY_SWEEP)
        if not result.changed:
            await session.rollback()
            return False

        hold.status = result.status
        session.add(hold)
        await crud.add_outbox_event(session, HOLD_EXPIRED, hold.hold_id, _expired_payload(hold))
        await session.commit()
        logger.info("Successfully expired hold with ID: %s", hold_id)
        return True


def _expired_payload(hold: Hold) -> str:
    return _serialize(HoldExpiredPayload(
        hold_id=hold.hold_id,
        transaction_id=hold.transaction_id,
        account_id=hold.account_id,
        amount=hold.amount,
        status=hold.status,
        expires_at=hold.expires_at,
    ))


def _serialize(payload) -> str:
    try:
        return payload.model_dump_json(by_alias=True)
    except (TypeError, ValueError) as e:
        raise PayloadSerializationError(f"Failed to serialize {type(payload).__name__}") from e
