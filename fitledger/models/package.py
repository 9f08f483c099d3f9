from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from fitledger.db.base_class import Base
from fitledger.models.enums import PaymentMethod

class Package(Base):
    __tablename__ = "package"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("client.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    total_sessions = Column(Integer, nullable=False)
    total_value = Column(Numeric(10, 2), nullable=False)
    session_value = Column(Numeric(10, 2), nullable=False)  # value credited to each logged session

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    start_date = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    client = relationship("Client", back_populates="packages")
    payments = relationship(
        "Payment", back_populates="package", cascade="all, delete-orphan",
        order_by=lambda: [Payment.payment_date, Payment.id]
    )
    sessions = relationship("TrainingSession", back_populates="package")

    def __repr__(self):
        return f"<Package(id={self.id}, client_id={self.client_id}, total_sessions={self.total_sessions}, total_value={self.total_value})>"


class Payment(Base):
    __tablename__ = "payment"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    package_id = Column(Integer, ForeignKey("package.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(DateTime, server_default=func.now(), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False, default=PaymentMethod.CARD)
    notes = Column(Text, nullable=True)
    created_by_id = Column(Integer, ForeignKey("user.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    package = relationship("Package", back_populates="payments")
    created_by = relationship("User")

    def __repr__(self):
        return f"<Payment(id={self.id}, package_id={self.package_id}, amount={self.amount})>"
