"""Product model."""
from sqlalchemy import Column, String, Boolean, Numeric, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType


class Product(Base):
    """Catalog product sold by a vendor."""

    __tablename__ = 'product'

    id = Column(IdType, primary_key=True, autoincrement=True)
    vendor_id = Column(IdType, ForeignKey('vendor_profile.id'), nullable=True)
    category_id = Column(IdType, ForeignKey('category.id'), nullable=True)
    sku = Column(String(100), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    short_description = Column(String(500), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    compare_price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=False, default='USD')
    tags = Column(Text, nullable=True)  # comma separated
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    vendor = relationship('VendorProfile', back_populates='products')
    category = relationship('Category', back_populates='products')
    variants = relationship('ProductVariant', back_populates='product', cascade='all, delete-orphan')
    inventory_records = relationship('Inventory', back_populates='product', cascade='all, delete-orphan')
    reviews = relationship('Review', back_populates='product', cascade='all, delete-orphan')

    @property
    def inventory(self):
        """Product-level inventory row (the one not tied to a variant)."""
        for record in self.inventory_records:
            if record.variant_id is None:
                return record
        return None

    @property
    def tag_list(self):
        if not self.tags:
            return []
        return [tag.strip() for tag in self.tags.split(',') if tag.strip()]

    def __repr__(self):
        return f"<Product(id={self.id}, title='{self.title}', sku='{self.sku}')>"
