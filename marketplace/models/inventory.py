"""Inventory model."""
from sqlalchemy import Column, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType


class Inventory(Base):
    """On-hand quantity for a product, or for one of its variants when variant_id is set."""

    __tablename__ = 'inventory'

    id = Column(IdType, primary_key=True, autoincrement=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False)
    variant_id = Column(IdType, ForeignKey('product_variant.id'), nullable=True, unique=True)
    quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    product = relationship('Product', back_populates='inventory_records')
    variant = relationship('ProductVariant', back_populates='inventory')

    @property
    def is_low(self):
        return self.quantity <= self.low_stock_threshold

    def __repr__(self):
        return f"<Inventory(product_id={self.product_id}, variant_id={self.variant_id}, quantity={self.quantity})>"
