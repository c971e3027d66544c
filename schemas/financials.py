from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal

# --- 1. PAGOS (transferencias on-chain) ---

class PaymentSubmit(BaseModel):
    """El pagador declara la red y el hash de su transferencia"""
    network: str = Field(..., example="base")
    tx_hash: str = Field(..., min_length=1)
    payment_type: str = Field("service_booking", pattern="^(service_booking|creator_tier)$")
    booking_id: Optional[int] = None
    tier: Optional[str] = Field(None, example="premium")


class FeeBreakdownQuery(BaseModel):
    amount: Decimal = Field(..., gt=0)


# --- 2. REFERIDOS ---

class CashoutRequest(BaseModel):
    network: str = Field(..., example="solana")
    payout_address: str = Field(..., min_length=1)
