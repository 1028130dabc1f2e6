import enum
from sqlalchemy import BigInteger, Column, DateTime, Enum, Index, Integer, Numeric, String, Text, func, text
from hold_service.db import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
BigIntId = BigInteger().with_variant(Integer, "sqlite")


class HoldStatus(str, enum.Enum):
    AUTHORIZED = "AUTHORIZED"
    CAPTURED = "CAPTURED"
    VOIDED = "VOIDED"
    EXPIRED = "EXPIRED"


class OutboxEventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class ProcessedEventStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Hold(Base):
    """A provisional reservation of funds, tied 1:1 to a transaction.

    Holds are created AUTHORIZED and only ever move forward through the
    lifecycle; rows are never deleted.
    """

    __tablename__ = "holds"

    hold_id        = Column(BigIntId, primary_key=True, autoincrement=True)
    transaction_id = Column(BigInteger, nullable=False)
    account_id     = Column(BigInteger, nullable=False)
    amount         = Column(Numeric(20, 2), nullable=False)
    status         = Column(Enum(HoldStatus, name="hold_status", native_enum=False, length=20),
                            nullable=False, default=HoldStatus.AUTHORIZED)
    created_at     = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at     = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    expires_at     = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("uq_holds_transaction_id", "transaction_id", unique=True),
        Index("ix_holds_status_expires_at", "status", "expires_at"),
    )
    __mapper_args__ = {"eager_defaults": True}


class OutboxEvent(Base):
    """Hold state change staged for publication.

    Written in the same transaction as the hold mutation it describes and
    relayed to the broker by the outbox publisher. Rows are kept after
    publication for audit and replay.
    """

    __tablename__ = "outbox_events"

    event_id     = Column(BigIntId, primary_key=True, autoincrement=True)
    event_type   = Column(String(50), nullable=False)
    aggregate_id = Column(BigInteger, nullable=False)
    payload      = Column(Text, nullable=False)
    status       = Column(Enum(OutboxEventStatus, name="outbox_event_status", native_enum=False, length=20),
                          nullable=False, default=OutboxEventStatus.PENDING)
    created_at   = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    published_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_outbox_events_status_event_id", "status", "event_id"),
    )
    __mapper_args__ = {"eager_defaults": True}


class ProcessedEvent(Base):
    """Dedup ledger for inbound transaction events.

    A SUCCESS row for an event id or payload hash makes any redelivery a
    no-op. FAILED rows carry an empty hash and never block a retry.
    """

    __tablename__ = "processed_events"

    id           = Column(BigIntId, primary_key=True, autoincrement=True)
    event_id     = Column(String(128), nullable=False)
    payload_hash = Column(String(64), nullable=False, default="")
    status       = Column(Enum(ProcessedEventStatus, name="processed_event_status", native_enum=False, length=20),
                          nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_processed_events_event_id", "event_id"),
        Index(
            "uq_processed_events_success_hash",
            "payload_hash",
            unique=True,
            postgresql_where=text("status = 'SUCCESS'"),
            sqlite_where=text("status = 'SUCCESS'"),
        ),
    )
    __mapper_args__ = {"eager_defaults": True}
