"""Models package - exports all SQLAlchemy models."""
# Accounts
from marketplace.models.user import User
from marketplace.models.vendor_profile import VendorProfile
from marketplace.models.address import Address, AddressType

# Catalog
from marketplace.models.category import Category
from marketplace.models.product import Product
from marketplace.models.product_variant import ProductVariant
from marketplace.models.inventory import Inventory
from marketplace.models.review import Review
from marketplace.models.wishlist_item import WishlistItem

# Checkout
from marketplace.models.cart_item import CartItem
from marketplace.models.coupon import Coupon, CouponType
from marketplace.models.order import Order, OrderStatus
from marketplace.models.order_line import OrderLine
from marketplace.models.payment import Payment, PaymentStatus

__all__ = [
    # Accounts
    'User', 'VendorProfile', 'Address', 'AddressType',
    # Catalog
    'Category', 'Product', 'ProductVariant', 'Inventory', 'Review', 'WishlistItem',
    # Checkout
    'CartItem', 'Coupon', 'CouponType', 'Order', 'OrderStatus', 'OrderLine',
    'Payment', 'PaymentStatus',
]
