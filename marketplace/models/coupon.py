"""Coupon model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, Enum
from sqlalchemy.sql import func
from marketplace.database import Base, IdType
import enum


class CouponType(str, enum.Enum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class Coupon(Base):
    """Discount code with activation window, usage cap and minimum-order constraints."""

    __tablename__ = 'coupon'

    id = Column(IdType, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    type = Column(Enum(CouponType, name='coupon_type', native_enum=False, length=20), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    minimum_amount = Column(Numeric(10, 2), nullable=True)
    maximum_discount = Column(Numeric(10, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    @property
    def is_exhausted(self):
        return self.usage_limit is not None and self.used_count >= self.usage_limit

    def __repr__(self):
        return f"<Coupon(code='{self.code}', type={self.type.value}, value={self.value})>"
