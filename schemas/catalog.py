from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

from core.config import MIN_SERVICE_PRICE, MAX_SERVICE_PRICE


class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=120, example="1:1 tokenomics review")
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = None
    price_usdc: Decimal = Field(..., ge=MIN_SERVICE_PRICE, le=MAX_SERVICE_PRICE, decimal_places=2)
    delivery_days: int = Field(..., ge=1, le=365)


class ServiceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=120)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = None
    price_usdc: Optional[Decimal] = Field(None, ge=MIN_SERVICE_PRICE, le=MAX_SERVICE_PRICE, decimal_places=2)
    delivery_days: Optional[int] = Field(None, ge=1, le=365)
    active: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: int
    creator_id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    price_usdc: float
    delivery_days: int
    active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CartAdd(BaseModel):
    service_id: int
