from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from fitledger.models.enums import PaymentMethod, DurationUnit

class PackageBase(BaseModel):
    name: str = Field(..., max_length=255)
    total_sessions: int = Field(..., gt=0)
    total_value: Decimal = Field(..., ge=0)  # 0 for fully comped packages
    start_date: Optional[datetime] = None

class PackageCreate(PackageBase):
    """
    Schema for selling a package to a client.
    session_value defaults to total_value / total_sessions; expires_at is
    derived from start_date plus the duration when both duration fields are set.
    """
    client_id: int
    session_value: Optional[Decimal] = Field(default=None, ge=0)
    duration_value: Optional[int] = Field(default=None, gt=0)
    duration_unit: Optional[DurationUnit] = None

    @model_validator(mode="after")
    def check_duration_pair(self):
        if (self.duration_value is None) != (self.duration_unit is None):
            raise ValueError("duration_value and duration_unit must be given together")
        return self

class Package(PackageBase):
    id: int
    client_id: int
    session_value: Decimal
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.CARD
    notes: Optional[str] = None

class Payment(BaseModel):
    id: int
    package_id: int
    amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class PackageSummary(BaseModel):
    """Balance state of a package, recomputed after every payment change."""
    package_id: Optional[int] = None
    total_value: Decimal
    total_sessions: int
    paid_amount: Decimal
    remaining_balance: Decimal
    unlocked_sessions: int
    locked_sessions: int
    used_sessions: int
    remaining_sessions: int
    is_fully_paid: bool
    payment_progress: Decimal  # percent, 0-100

class GuardResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    used_sessions: Optional[int] = None
    unlocked_sessions: Optional[int] = None

class PaymentOperationResult(BaseModel):
    success: bool
    message: str
    payment: Optional[Payment] = None
    summary: Optional[PackageSummary] = None

class PaymentList(BaseModel):
    payments: List[Payment] = []
    summary: PackageSummary
