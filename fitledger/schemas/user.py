from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from fitledger.models.enums import Role

class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., max_length=255)
    role: Role = Role.TRAINER
    is_active: bool = True

class UserCreate(UserBase):
    organization_id: int
    commission_profile_id: Optional[int] = None

class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    commission_profile_id: Optional[int] = None

class User(UserBase):
    id: int
    organization_id: int
    commission_profile_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
