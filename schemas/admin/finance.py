from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal


class PaymentReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PayoutRecord(BaseModel):
    payout_tx_hash: str = Field(..., min_length=1)


class WalletCreate(BaseModel):
    network: str
    name: str = Field(..., min_length=1, max_length=60)
    wallet_address: str
    explorer_url: Optional[str] = None


class WalletUpdate(BaseModel):
    wallet_address: Optional[str] = None
    active: Optional[bool] = None


class CreditAdjust(BaseModel):
    amount: Decimal = Field(..., description="Positivo suma, negativo resta")
    reason: str = Field(..., min_length=3, max_length=500)


class CashoutComplete(BaseModel):
    tx_hash: str = Field(..., min_length=1)


class DisputeResolve(BaseModel):
    resolution: str = Field(..., pattern="^(refund|release)$")
    note: Optional[str] = Field(None, max_length=2000)
    refund_tx_hash: Optional[str] = None


class BookingRefund(BaseModel):
    refund_tx_hash: Optional[str] = None
    note: Optional[str] = Field(None, max_length=2000)
