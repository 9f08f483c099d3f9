from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base
from fitledger.models.enums import Role

class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.TRAINER, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Referenced, not owned: deleting a profile leaves the trainer unconfigured
    commission_profile_id = Column(
        Integer, ForeignKey("commission_profile.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="users")
    commission_profile = relationship("CommissionProfile", back_populates="trainers")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
