"""Address model."""
from sqlalchemy import Column, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType
import enum


class AddressType(str, enum.Enum):
    BILLING = 'billing'
    SHIPPING = 'shipping'


class Address(Base):
    """Billing or shipping address owned by a user."""

    __tablename__ = 'address'

    id = Column(IdType, primary_key=True, autoincrement=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, index=True)
    type = Column(Enum(AddressType, name='address_type', native_enum=False, length=20), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    company = Column(String(200), nullable=True)
    address1 = Column(String(255), nullable=False)
    address2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False)
    phone = Column(String(50), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('User', back_populates='addresses')

    def __repr__(self):
        return f"<Address(id={self.id}, user_id={self.user_id}, type={self.type.value})>"
