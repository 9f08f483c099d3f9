from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

class TrainingSessionCreate(BaseModel):
    trainer_id: int
    client_id: int
    package_id: Optional[int] = None
    location_id: Optional[int] = None  # defaults to the client's location
    session_date: datetime
    session_value: Optional[Decimal] = Field(default=None, ge=0)  # defaults to the package's session_value
    notes: Optional[str] = None

class TrainingSession(BaseModel):
    id: int
    trainer_id: int
    client_id: int
    package_id: Optional[int] = None
    location_id: Optional[int] = None
    session_date: datetime
    session_value: Decimal
    notes: Optional[str] = None
    validated: bool
    validated_at: Optional[datetime] = None
    cancelled: bool
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class SessionOperationResult(BaseModel):
    success: bool
    message: str
    session: Optional[TrainingSession] = None
