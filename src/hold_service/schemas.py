from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

from hold_service.models import HoldStatus


class CreateHoldRequest(BaseModel):
    transaction_id: int      = Field(..., alias="transactionId")
    issuer_account_id: int   = Field(..., alias="issuerAccountId")
    merchant_account_id: int = Field(..., alias="merchantAccountId")
    amount: Decimal          = Field(..., gt=0, description="Hold amount (positive)")
    currency: str            = Field("USD", pattern=r"^[A-Z]{3}$")

    class Config:
        populate_by_name = True


class CreateHoldResponse(BaseModel):
    hold_id: int       = Field(..., alias="holdId")
    status: HoldStatus

    class Config:
        populate_by_name = True


class HoldRead(BaseModel):
    hold_id: int        = Field(..., alias="holdId")
    transaction_id: int = Field(..., alias="transactionId")
    account_id: int     = Field(..., alias="accountId")
    amount: Decimal
    status: HoldStatus
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    expires_at: datetime           = Field(..., alias="expiresAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class TransactionEvent(BaseModel):
    """Inbound transaction.authorized / posted / failed event."""

    transaction_id: int     = Field(..., alias="transactionId")
    hold_id: Optional[int]  = Field(None, alias="holdId")

    class Config:
        populate_by_name = True


class HoldCreatedPayload(BaseModel):
    hold_id: int             = Field(..., alias="holdId")
    transaction_id: int      = Field(..., alias="transactionId")
    issuer_account_id: int   = Field(..., alias="issuerAccountId")
    merchant_account_id: int = Field(..., alias="merchantAccountId")
    amount: Decimal
    currency: str
    status: HoldStatus
    expires_at: datetime     = Field(..., alias="expiresAt")

    class Config:
        populate_by_name = True


class HoldExpiredPayload(BaseModel):
    hold_id: int        = Field(..., alias="holdId")
    transaction_id: int = Field(..., alias="transactionId")
    account_id: int     = Field(..., alias="accountId")
    amount: Decimal
    status: HoldStatus
    expires_at: datetime = Field(..., alias="expiresAt")

    class Config:
        populate_by_name = True
