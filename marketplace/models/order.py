"""Order model."""
from sqlalchemy import Column, String, Numeric, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType
import enum


class OrderStatus(str, enum.Enum):
    """Order lifecycle. Declaration order is the forward direction."""
    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'


class Order(Base):
    """Order header. Money fields are immutable once created."""

    __tablename__ = 'customer_order'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_number = Column(String(40), nullable=True, unique=True, index=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, index=True)
    billing_address_id = Column(IdType, ForeignKey('address.id'), nullable=False)
    shipping_address_id = Column(IdType, ForeignKey('address.id'), nullable=False)

    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(Enum(OrderStatus, name='order_status', native_enum=False, length=20),
                    nullable=False, default=OrderStatus.PENDING)
    currency = Column(String(3), nullable=False, default='USD')
    coupon_code = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship('User')
    billing_address = relationship('Address', foreign_keys=[billing_address_id])
    shipping_address = relationship('Address', foreign_keys=[shipping_address_id])
    lines = relationship('OrderLine', back_populates='order', cascade='all, delete-orphan')
    payments = relationship('Payment', back_populates='order', order_by='Payment.id')

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status={self.status.value})>"
