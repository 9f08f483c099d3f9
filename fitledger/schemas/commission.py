import enum
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from fitledger.core.commission_tiers import validate_tiers
from fitledger.core.exceptions import CommissionConfigurationError
from fitledger.models.enums import CalculationMethod, TriggerType

class CommissionTierCreate(BaseModel):
    tier_level: int = Field(..., ge=1)
    name: Optional[str] = Field(default=None, max_length=255)  # defaults to "Tier <level>"
    session_threshold: int = Field(..., ge=0)
    session_commission_percent: Optional[Decimal] = None
    session_flat_fee: Optional[Decimal] = None
    sales_commission_percent: Optional[Decimal] = None
    sales_flat_fee: Optional[Decimal] = None
    tier_bonus: Optional[Decimal] = None

class CommissionProfileCreate(BaseModel):
    organization_id: int
    name: str = Field(..., max_length=255)
    description: Optional[str] = None
    is_default: bool = False
    calculation_method: CalculationMethod = CalculationMethod.PERCENTAGE
    trigger_type: TriggerType = TriggerType.SESSION_COUNT
    tiers: List[CommissionTierCreate]

    @model_validator(mode="after")
    def check_tiers(self):
        try:
            validate_tiers(self.tiers, self.calculation_method)
        except CommissionConfigurationError as e:
            raise ValueError(str(e)) from e
        return self

class CommissionTier(BaseModel):
    id: int
    tier_level: int
    name: str
    session_threshold: int
    session_commission_percent: Optional[Decimal] = None
    session_flat_fee: Optional[Decimal] = None
    sales_commission_percent: Optional[Decimal] = None
    sales_flat_fee: Optional[Decimal] = None
    tier_bonus: Optional[Decimal] = None

    class Config:
        from_attributes = True

class CommissionProfile(BaseModel):
    id: int
    organization_id: int
    name: str
    description: Optional[str] = None
    is_default: bool
    is_active: bool
    calculation_method: CalculationMethod
    trigger_type: TriggerType
    tiers: List[CommissionTier] = []

    class Config:
        from_attributes = True


class CommissionStatus(str, enum.Enum):
    OK = "ok"
    UNCONFIGURED = "unconfigured"  # trainer has no commission profile
    MISCONFIGURED = "misconfigured"  # profile tiers cannot price the sessions
    ERROR = "error"  # unexpected failure while reporting a single trainer in bulk


class SessionCommissionLine(BaseModel):
    session_id: int
    session_date: datetime
    session_value: Decimal
    validated: bool
    cumulative_index: Optional[int] = None  # validated sessions billed before this one
    tier_level: Optional[int] = None
    rate: Optional[Decimal] = None  # percent or flat fee, depending on the method
    commission: Decimal = Decimal("0.00")

class SaleCommissionLine(BaseModel):
    package_id: int
    client_id: int
    sold_at: datetime
    package_value: Decimal
    commission: Decimal = Decimal("0.00")

class CommissionReport(BaseModel):
    """
    Commission owed to one trainer over one period. A point-in-time snapshot:
    sessions validated or cancelled after calculated_at are not reflected.

    total_commission = session_commission + sales_commission + tier_bonus.
    """
    trainer_id: int
    profile_id: Optional[int] = None
    status: CommissionStatus
    message: Optional[str] = None
    calculation_method: Optional[CalculationMethod] = None
    trigger_type: Optional[TriggerType] = None
    period_start: datetime
    period_end: datetime
    session_count: int = 0
    validated_count: int = 0
    total_session_value: Decimal = Decimal("0.00")
    packages_sold: int = 0
    total_sales_value: Decimal = Decimal("0.00")
    session_commission: Decimal = Decimal("0.00")
    sales_commission: Decimal = Decimal("0.00")
    tier_bonus: Decimal = Decimal("0.00")
    total_commission: Decimal = Decimal("0.00")
    tier_reached: Optional[int] = None
    breakdown: List[SessionCommissionLine] = []
    sales: List[SaleCommissionLine] = []
    calculated_at: datetime

class CommissionCalculation(BaseModel):
    id: int
    user_id: int
    organization_id: int
    profile_id: Optional[int] = None
    period_start: datetime
    period_end: datetime
    status: str
    session_count: int
    validated_count: int
    packages_sold: int
    session_commission: Decimal
    sales_commission: Decimal
    tier_bonus: Decimal
    total_commission: Decimal
    tier_reached: Optional[int] = None
    calculated_at: datetime

    class Config:
        from_attributes = True
