from pydantic import BaseModel, Field
from typing import Optional, List


class BroadcastNotification(BaseModel):
    type: str = Field("announcement", example="system")
    title: str = Field(..., min_length=1, max_length=120)
    message: str = Field(..., min_length=1, max_length=2000)
    recipient_type: str = Field("all", pattern="^(all|role|specific)$")
    role: Optional[str] = None
    user_ids: Optional[List[str]] = None
