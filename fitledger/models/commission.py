from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric, ForeignKey, Enum, JSON, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base
from fitledger.models.enums import CalculationMethod, TriggerType

class CommissionProfile(Base):
    __tablename__ = "commission_profile"
    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_commission_profile_org_name"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    calculation_method = Column(Enum(CalculationMethod), nullable=False, default=CalculationMethod.PERCENTAGE)
    trigger_type = Column(Enum(TriggerType), nullable=False, default=TriggerType.SESSION_COUNT)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="commission_profiles")
    tiers = relationship(
        "CommissionTier", back_populates="profile", cascade="all, delete-orphan",
        order_by="CommissionTier.tier_level"
    )
    trainers = relationship("User", back_populates="commission_profile")

    def __repr__(self):
        return f"<CommissionProfile(id={self.id}, name='{self.name}', method='{self.calculation_method}')>"


class CommissionTier(Base):
    __tablename__ = "commission_tier"
    __table_args__ = (UniqueConstraint("profile_id", "tier_level", name="uq_commission_tier_profile_level"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    profile_id = Column(Integer, ForeignKey("commission_profile.id", ondelete="CASCADE"), nullable=False, index=True)
    tier_level = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    session_threshold = Column(Integer, nullable=False, default=0)  # prior validated sessions needed to enter
    session_commission_percent = Column(Numeric(5, 2), nullable=True)  # used by PERCENTAGE profiles
    session_flat_fee = Column(Numeric(10, 2), nullable=True)  # used by FLAT_FEE profiles
    sales_commission_percent = Column(Numeric(5, 2), nullable=True)  # of each package sold in the period
    sales_flat_fee = Column(Numeric(10, 2), nullable=True)  # per package sold, wins over the percent
    tier_bonus = Column(Numeric(10, 2), nullable=True)  # paid once per period for reaching this tier
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    profile = relationship("CommissionProfile", back_populates="tiers")

    def __repr__(self):
        return f"<CommissionTier(id={self.id}, level={self.tier_level}, threshold={self.session_threshold})>"


class LegacyCommissionTier(Base):
    """v1 organization-wide tier. Read only by the v2 migration."""
    __tablename__ = "legacy_commission_tier"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False, index=True)
    min_sessions = Column(Integer, nullable=False)
    max_sessions = Column(Integer, nullable=True)  # None = open-ended
    percentage = Column(Numeric(7, 4), nullable=False)  # historical rows hold both 0.25 and 25 for 25%
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="legacy_commission_tiers")

    def __repr__(self):
        return f"<LegacyCommissionTier(id={self.id}, min={self.min_sessions}, max={self.max_sessions}, pct={self.percentage})>"


class CommissionCalculation(Base):
    __tablename__ = "commission_calculation"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    profile_id = Column(Integer, ForeignKey("commission_profile.id", ondelete="SET NULL"), nullable=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False, index=True)
    status = Column(String(50), nullable=False)
    calculation_method = Column(Enum(CalculationMethod), nullable=True)
    session_count = Column(Integer, nullable=False)
    validated_count = Column(Integer, nullable=False)
    packages_sold = Column(Integer, nullable=False, default=0)
    session_commission = Column(Numeric(12, 2), nullable=False, default=0)
    sales_commission = Column(Numeric(12, 2), nullable=False, default=0)
    tier_bonus = Column(Numeric(12, 2), nullable=False, default=0)
    total_commission = Column(Numeric(12, 2), nullable=False)
    tier_reached = Column(Integer, nullable=True)
    snapshot = Column(JSON, nullable=True)  # per-session breakdown as computed
    calculated_at = Column(DateTime, nullable=False)

    user = relationship("User")
    profile = relationship("CommissionProfile")

    def __repr__(self):
        return f"<CommissionCalculation(id={self.id}, user_id={self.user_id}, total={self.total_commission})>"
