from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

class ClientCreate(BaseModel):
    organization_id: int
    name: str = Field(..., max_length=255)
    email: Optional[EmailStr] = None
    location_id: Optional[int] = None
    primary_trainer_id: Optional[int] = None

class Client(ClientCreate):
    id: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
