from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base

class Organization(Base):
    __tablename__ = "organization"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    # v1 setting, kept for the migration audit trail. e.g. "PROGRESSIVE", "GRADUATED"
    legacy_commission_method = Column(String(50), nullable=True, default="PROGRESSIVE")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    users = relationship("User", back_populates="organization")
    locations = relationship("Location", back_populates="organization")
    clients = relationship("Client", back_populates="organization")
    legacy_commission_tiers = relationship(
        "LegacyCommissionTier", back_populates="organization", order_by="LegacyCommissionTier.min_sessions"
    )
    commission_profiles = relationship("CommissionProfile", back_populates="organization")

    def __repr__(self):
        return f"<Organization(id={self.id}, name='{self.name}')>"
