from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

HANDLE_PATTERN = r"^[A-Za-z0-9_-]{3,30}$"

# --- PROFILE ---

class UserRegister(BaseModel):
    """Primer registro del perfil (el uid y el email salen del token)"""
    handle: str = Field(..., pattern=HANDLE_PATTERN, example="crypto_coach")
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = None
    referral_code: Optional[str] = Field(None, description="Código de quien te invitó")


class UserUpdate(BaseModel):
    handle: Optional[str] = Field(None, pattern=HANDLE_PATTERN)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = None


class PayoutAddressesUpdate(BaseModel):
    """Direcciones de cobro por red; None = no tocar, "" = borrar"""
    eth: Optional[str] = None
    sol: Optional[str] = None
    bsc: Optional[str] = None
    sui: Optional[str] = None
    cardano: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: Optional[str] = None
    handle: Optional[str] = None
    role: str
    verified: bool
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    referral_code: Optional[str] = None
    referral_credits: float
    lifetime_referral_credits: float
    payout_address_eth: Optional[str] = None
    payout_address_sol: Optional[str] = None
    payout_address_bsc: Optional[str] = None
    payout_address_sui: Optional[str] = None
    payout_address_cardano: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- CREATORS ---

class CreatorApply(BaseModel):
    headline: str = Field(..., min_length=3, max_length=120, example="Web3 growth consultant")
    category: str = Field(..., min_length=2, max_length=60)
    bio: Optional[str] = Field(None, max_length=500)
    intro_video_url: Optional[str] = None


class CreatorPublic(BaseModel):
    id: int
    user_id: str
    headline: Optional[str] = None
    category: Optional[str] = None
    tier: str
    rating: Optional[float] = 0.0
    review_count: Optional[int] = 0

    class Config:
        from_attributes = True


class ReferralApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
