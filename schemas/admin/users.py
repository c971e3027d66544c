from pydantic import BaseModel, EmailStr, Field
from typing import Optional

from schemas.users import HANDLE_PATTERN


class AdminCreateUser(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    handle: str = Field(..., pattern=HANDLE_PATTERN)
    role: str = Field("client", pattern="^(client|creator|admin)$")


class RoleUpdate(BaseModel):
    role: str = Field(..., pattern="^(client|creator|admin)$")


class BanUpdate(BaseModel):
    banned: bool
    reason: Optional[str] = None
