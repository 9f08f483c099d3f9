from .organization import (
    OrganizationCreate,
    Organization,
    LocationCreate,
    LegacyCommissionTierCreate,
)
from .user import UserBase, UserCreate, UserUpdate, User
from .client import ClientCreate, Client
from .package import (
    PackageBase,
    PackageCreate,
    Package,
    PaymentCreate,
    Payment,
    PackageSummary,
    GuardResult,
    PaymentOperationResult,
    PaymentList,
)
from .training_session import (
    TrainingSessionCreate,
    TrainingSession,
    SessionOperationResult,
)
from .commission import (
    CommissionTierCreate,
    CommissionProfileCreate,
    CommissionTier,
    CommissionProfile,
    CommissionStatus,
    SessionCommissionLine,
    CommissionReport,
    CommissionCalculation,
)
from .migration import (
    MigrationStatus,
    MigrationResult,
    MigrationSummary,
    VerificationResult,
)
