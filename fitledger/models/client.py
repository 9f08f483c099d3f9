from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base

class Client(Base):
    __tablename__ = "client"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("location.id"), nullable=True, index=True)
    primary_trainer_id = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    organization = relationship("Organization", back_populates="clients")
    location = relationship("Location")
    primary_trainer = relationship("User")

    # Packages and sessions live and die with their client
    packages = relationship("Package", back_populates="client", cascade="all, delete-orphan")
    sessions = relationship("TrainingSession", back_populates="client", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"
