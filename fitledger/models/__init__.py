# Import every model so Base.metadata knows all tables before create_all()
from .enums import (
    Role,
    CalculationMethod,
    TriggerType,
    PaymentMethod,
    DurationUnit,
    LegacyCommissionMethod,
)
from .organization import Organization
from .user import User
from .location import Location
from .client import Client
from .package import Package, Payment
from .training_session import TrainingSession
from .commission import CommissionProfile, CommissionTier, LegacyCommissionTier, CommissionCalculation
from .audit_log import AuditLog
