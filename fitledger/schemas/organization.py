from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from fitledger.models.enums import LegacyCommissionMethod

class OrganizationCreate(BaseModel):
    name: str = Field(..., max_length=255)
    legacy_commission_method: Optional[str] = Field(default=LegacyCommissionMethod.PROGRESSIVE.value, max_length=50)

class Organization(OrganizationCreate):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

class LocationCreate(BaseModel):
    organization_id: int
    name: str = Field(..., max_length=255)
    is_active: bool = True

class LegacyCommissionTierCreate(BaseModel):
    """A v1 organization-wide tier row. Percentage is stored as found in historical data."""
    organization_id: int
    min_sessions: int = Field(..., ge=0)
    max_sessions: Optional[int] = Field(default=None, ge=0)
    percentage: Decimal
