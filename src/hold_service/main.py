import asyncio
import logging
from datetime import timedelta
from fastapi import FastAPI, HTTPException, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from hold_service import crud, schemas, workers
from hold_service.config import Settings, settings
from hold_service.db import engine, Base, get_session
from hold_service.events import TransactionEventKind
from hold_service.fraud import AmountLimitFraudCheck
from hold_service.holds import HoldService
from hold_service.inbound import TransactionEventService
from hold_service.messaging import StreamPublisher, close_rabbit, get_hold_events_exchange, init_rabbit
from hold_service.outbox import OutboxRelay
import uvicorn

logger = logging.getLogger("holds.api")
app = FastAPI(title="Hold Service")

def create_hold_service(config: Settings) -> HoldService:
    return HoldService(
        fraud_check=AmountLimitFraudCheck(config.HOLD_FRAUD_LIMIT),
        expiry_horizon=timedelta(days=config.HOLD_EXPIRY_DAYS),
    )

hold_service = create_hold_service(settings)
transaction_event_service = TransactionEventService()

def get_hold_service() -> HoldService:
    return hold_service

@app.on_event("startup")
async def startup_event():
    logging.basicConfig(level=settings.LOG_LEVEL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await init_rabbit()
    relay = OutboxRelay(StreamPublisher(await get_hold_events_exchange()), settings.OUTBOX_BATCH_SIZE)

    app.state.tasks = [
        asyncio.create_task(workers.transaction_event_consumer(kind, transaction_event_service))
        for kind in TransactionEventKind
    ]
    app.state.tasks.append(asyncio.create_task(
        workers.outbox_publisher(relay, interval=settings.OUTBOX_POLL_INTERVAL)
    ))
    app.state.tasks.append(asyncio.create_task(
        workers.hold_expiry_scheduler(hold_service, interval=settings.HOLD_EXPIRY_CHECK_INTERVAL)
    ))

@app.on_event("shutdown")
async def shutdown_event():
    for task in getattr(app.state, "tasks", []):
        task.cancel()
    await close_rabbit()
    await engine.dispose()

@app.get("/health")
async def health():
    return {"status": "ok"}

@app.post("/api/holds", response_model=schemas.CreateHoldResponse, status_code=201)
async def create_hold(
    req: schemas.CreateHoldRequest,
    session: AsyncSession = Depends(get_session),
    service: HoldService = Depends(get_hold_service)
):
    logger.info("Creating hold for transaction: %s, issuer: %s, merchant: %s, amount: %s",
                req.transaction_id, req.issuer_account_id, req.merchant_account_id, req.amount)
    result = await service.create_hold(session, req)
    if not result.ok:
        logger.error("Invalid request: %s", result.reason)
        raise HTTPException(status_code=400, detail=result.reason)
    logger.info("Hold created with ID: %s, status: %s", result.hold_id, result.status.value)
    return schemas.CreateHoldResponse(hold_id=result.hold_id, status=result.status)

@app.get("/api/holds/{hold_id}", response_model=schemas.HoldRead)
async def get_hold(
    hold_id: int,
    session: AsyncSession = Depends(get_session)
):
    hold = await crud.get_hold(session, hold_id)
    if not hold:
        raise HTTPException(status_code=404, detail="Hold not found")
    return schemas.HoldRead.model_validate(hold)

if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    uvicorn.run("hold_service.main:app", host="0.0.0.0", port=8000)
