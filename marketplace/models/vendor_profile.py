"""Vendor profile model - a user's seller storefront."""
from sqlalchemy import Column, String, Boolean, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType


class VendorProfile(Base):
    """Seller storefront, 1:1 with User."""

    __tablename__ = 'vendor_profile'

    id = Column(IdType, primary_key=True, autoincrement=True)
    user_id = Column(IdType, ForeignKey('app_user.id'), nullable=False, unique=True)
    store_name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship('User', back_populates='vendor_profile')
    products = relationship('Product', back_populates='vendor')

    def __repr__(self):
        return f"<VendorProfile(id={self.id}, store_name='{self.store_name}')>"
