from pydantic import BaseModel, Field
from typing import Optional, List


class BookingCreate(BaseModel):
    service_id: int


class DeliverySubmit(BaseModel):
    deliverable_urls: List[str] = Field(..., min_length=1, max_length=20)
    note: Optional[str] = Field(None, max_length=2000)


class DisputeOpen(BaseModel):
    reason: str = Field(..., min_length=10, max_length=2000)


class MessageCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=5000)
    attachments: Optional[List[str]] = None


class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
