"""Payment model."""
from sqlalchemy import Column, String, Numeric, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType
import enum


class PaymentStatus(str, enum.Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    PARTIALLY_REFUNDED = 'PARTIALLY_REFUNDED'
    REFUNDED = 'REFUNDED'


class Payment(Base):
    """Local mirror of a charge attempt against an order (many per order)."""

    __tablename__ = 'payment'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('customer_order.id'), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(Enum(PaymentStatus, name='payment_status', native_enum=False, length=20),
                    nullable=False, default=PaymentStatus.PENDING)
    payment_method = Column(String(30), nullable=False)
    transaction_id = Column(String(255), nullable=True, index=True)
    gateway_response = Column(Text, nullable=True)  # JSON text
    refunded_amount = Column(Numeric(10, 2), nullable=False, default=0)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    order = relationship('Order', back_populates='payments')

    @property
    def refundable_amount(self):
        return (self.amount or 0) - (self.refunded_amount or 0)

    def __repr__(self):
        return f"<Payment(id={self.id}, order_id={self.order_id}, amount={self.amount}, status={self.status.value})>"
