"""User model - marketplace buyers and sellers."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base, IdType


class User(Base):
    """Platform user. Sellers additionally own a VendorProfile."""

    __tablename__ = 'app_user'

    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    vendor_profile = relationship('VendorProfile', uselist=False, back_populates='user')
    addresses = relationship('Address', back_populates='user', cascade='all, delete-orphan')

    @property
    def full_name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)

    @property
    def is_seller(self):
        return self.vendor_profile is not None and self.vendor_profile.is_active

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
