import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    PT_MANAGER = "PT_MANAGER"
    CLUB_MANAGER = "CLUB_MANAGER"
    TRAINER = "TRAINER"


class CalculationMethod(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"  # tier rate is a percent of session value
    FLAT_FEE = "FLAT_FEE"  # tier rate is a fixed amount per session


class TriggerType(str, enum.Enum):
    NONE = "NONE"  # every session bills at the base tier
    SESSION_COUNT = "SESSION_COUNT"  # cumulative over the whole period
    MONTHLY_SESSION_COUNT = "MONTHLY_SESSION_COUNT"  # counter resets each calendar month


class PaymentMethod(str, enum.Enum):
    CARD = "CARD"
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class DurationUnit(str, enum.Enum):
    DAYS = "DAYS"
    WEEKS = "WEEKS"
    MONTHS = "MONTHS"


class LegacyCommissionMethod(str, enum.Enum):
    PROGRESSIVE = "PROGRESSIVE"
    GRADUATED = "GRADUATED"


class PackageStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"  # every session used
    EXPIRED = "EXPIRED"
    EXPIRING_SOON = "EXPIRING_SOON"
