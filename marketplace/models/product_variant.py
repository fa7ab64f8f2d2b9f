"""Product Variant model."""
from sqlalchemy import Column, String, Boolean, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from marketplace.database import Base, IdType


class ProductVariant(Base):
    """A SKU/price/inventory combination under a parent product (size, color...)."""

    __tablename__ = 'product_variant'

    id = Column(IdType, primary_key=True, autoincrement=True)
    product_id = Column(IdType, ForeignKey('product.id'), nullable=False)
    sku = Column(String(100), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    compare_price = Column(Numeric(10, 2), nullable=True)
    attributes = Column(Text, nullable=True)  # JSON text
    is_active = Column(Boolean, nullable=False, default=True)

    # Relationships
    product = relationship('Product', back_populates='variants')
    inventory = relationship('Inventory', uselist=False, back_populates='variant')

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, sku='{self.sku}', price={self.price})>"
