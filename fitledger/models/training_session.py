from sqlalchemy import Column, Integer, Text, Boolean, DateTime, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base

class TrainingSession(Base):
    __tablename__ = "training_session"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    trainer_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("client.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("package.id"), nullable=True, index=True)
    location_id = Column(Integer, ForeignKey("location.id"), nullable=True, index=True)

    session_date = Column(DateTime, nullable=False, index=True)
    session_value = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    validated = Column(Boolean, default=False, nullable=False, index=True)
    validated_at = Column(DateTime, nullable=True)
    cancelled = Column(Boolean, default=False, nullable=False, index=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    trainer = relationship("User")
    client = relationship("Client", back_populates="sessions")
    package = relationship("Package", back_populates="sessions")
    location = relationship("Location")

    def __repr__(self):
        return f"<TrainingSession(id={self.id}, trainer_id={self.trainer_id}, date={self.session_date}, validated={self.validated}, cancelled={self.cancelled})>"
