import pytest
import fnmatch
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock

from marketplace import create_app
from marketplace.database import get_session, create_tables, drop_tables
from marketplace.middleware import issue_token
from marketplace.models import (
    User, VendorProfile, Address, AddressType, Category, Product, ProductVariant,
    Inventory, Coupon, CouponType, CartItem
)
from marketplace.services import order_service
from marketplace.services.cache_service import get_cache
from marketplace.services.payment_gateways import PaymentIntent, Refund, UnavailableGateway


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestConfig')


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test inside an application context."""
    with app.app_context():
        create_tables()
        session = get_session()
        yield session
        session.rollback()
        get_session().remove()
        drop_tables()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def buyer(session):
    user = User(email='buyer@test.com', first_name='Bea', last_name='Buyer', is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def other_user(session):
    user = User(email='other@test.com', first_name='Otto', last_name='Other', is_active=True)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def seller(session):
    """User with an active vendor profile."""
    user = User(email='seller@test.com', first_name='Sam', last_name='Seller', is_active=True)
    session.add(user)
    session.flush()
    session.add(VendorProfile(user_id=user.id, store_name='Sam Store', slug='sam-store'))
    session.commit()
    return user


@pytest.fixture(scope='function')
def other_seller(session):
    user = User(email='seller2@test.com', first_name='Sue', last_name='Seller', is_active=True)
    session.add(user)
    session.flush()
    session.add(VendorProfile(user_id=user.id, store_name='Sue Store', slug='sue-store'))
    session.commit()
    return user


@pytest.fixture(scope='function')
def category(session):
    category = Category(name='Gadgets', slug='gadgets')
    session.add(category)
    session.commit()
    return category


def _make_product(session, vendor_id, category_id, sku, title, price, quantity=None, **kwargs):
    product = Product(
        vendor_id=vendor_id,
        category_id=category_id,
        sku=sku,
        title=title,
        slug=sku.lower(),
        price=Decimal(price),
        **kwargs
    )
    if quantity is not None:
        product.inventory_records.append(Inventory(quantity=quantity, low_stock_threshold=1))
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def product(session, seller, category):
    """20.00 product with 10 units in stock."""
    return _make_product(
        session, seller.vendor_profile.id, category.id, 'SKU-WIDGET', 'Widget', '20.00', quantity=10,
        description='A useful widget', tags='tools,home'
    )


@pytest.fixture(scope='function')
def product_b(session, seller, category):
    """15.00 product with 3 units in stock."""
    return _make_product(
        session, seller.vendor_profile.id, category.id, 'SKU-GIZMO', 'Gizmo', '15.00', quantity=3,
        short_description='Small gizmo'
    )


@pytest.fixture(scope='function')
def untracked_product(session, other_seller, category):
    """Product without an inventory row, sold by another seller."""
    return _make_product(session, other_seller.vendor_profile.id, category.id, 'SKU-POSTER', 'Poster', '500.00')


@pytest.fixture(scope='function')
def variant(session, product):
    """Large widget at 25.00 with 2 units in stock."""
    variant = ProductVariant(product_id=product.id, sku='SKU-WIDGET-L', title='Widget Large', price=Decimal('25.00'))
    variant.inventory = Inventory(product_id=product.id, quantity=2)
    session.add(variant)
    session.commit()
    return variant


def _make_address(session, user, address_type, is_default=True):
    address = Address(
        user_id=user.id,
        type=address_type,
        first_name=user.first_name,
        last_name=user.last_name,
        address1='1 Main St',
        city='Springfield',
        postal_code='12345',
        country='US',
        is_default=is_default
    )
    session.add(address)
    session.commit()
    return address


@pytest.fixture(scope='function')
def billing_address(session, buyer):
    return _make_address(session, buyer, AddressType.BILLING)


@pytest.fixture(scope='function')
def shipping_address(session, buyer):
    return _make_address(session, buyer, AddressType.SHIPPING)


@pytest.fixture(scope='function')
def foreign_address(session, other_user):
    return _make_address(session, other_user, AddressType.SHIPPING)


@pytest.fixture(scope='function')
def cart_55(session, buyer, product, product_b):
    """2 x 20.00 + 1 x 15.00 = 55.00"""
    session.add_all([
        CartItem(user_id=buyer.id, product_id=product.id, quantity=2),
        CartItem(user_id=buyer.id, product_id=product_b.id, quantity=1),
    ])
    session.commit()


def _coupon(session, code, coupon_type, value, **kwargs):
    coupon = Coupon(code=code, type=coupon_type, value=Decimal(value), is_active=True, **kwargs)
    session.add(coupon)
    session.commit()
    return coupon


@pytest.fixture(scope='function')
def save20(session):
    return _coupon(session, 'SAVE20', CouponType.FIXED, '20.00')


@pytest.fixture(scope='function')
def percent10_capped(session):
    return _coupon(session, 'TEN', CouponType.PERCENTAGE, '10', maximum_discount=Decimal('30.00'))


@pytest.fixture(scope='function')
def expired_coupon(session):
    return _coupon(
        session, 'OLD', CouponType.FIXED, '5.00',
        expires_at=datetime.now(timezone.utc) - timedelta(days=1)
    )


@pytest.fixture(scope='function')
def min_amount_coupon(session):
    return _coupon(session, 'BIG100', CouponType.FIXED, '10.00', minimum_amount=Decimal('100.00'))


@pytest.fixture(scope='function')
def exhausted_coupon(session):
    return _coupon(session, 'GONE', CouponType.FIXED, '10.00', usage_limit=1, used_count=1)


def _auth(user_id):
    return {'Authorization': f'Bearer {issue_token(user_id)}'}


@pytest.fixture(scope='function')
def buyer_headers(session, buyer):
    return _auth(buyer.id)


@pytest.fixture(scope='function')
def seller_headers(session, seller):
    return _auth(seller.id)


@pytest.fixture(scope='function')
def other_headers(session, other_user):
    return _auth(other_user.id)


@pytest.fixture
def no_gateway():
    return UnavailableGateway()


@pytest.fixture
def fake_gateway():
    """Mock gateway that succeeds by default."""
    gateway = Mock()
    gateway.name = 'stripe'
    gateway.available = True
    gateway.create_intent.return_value = PaymentIntent(
        id='pi_test_123', client_secret='pi_test_123_secret', status='requires_payment_method',
        raw={'id': 'pi_test_123'}
    )
    gateway.retrieve_intent.return_value = PaymentIntent(
        id='pi_test_123', status='succeeded', raw={'id': 'pi_test_123', 'status': 'succeeded'}
    )
    gateway.create_refund.return_value = Refund(id='re_test_1', raw={'id': 're_test_1'})
    return gateway


@pytest.fixture(scope='function')
def order(session, buyer, cart_55, billing_address, shipping_address):
    """PENDING order for cart_55: total 59.40."""
    order, _ = order_service.create_order(session, buyer.id, billing_address.id, shipping_address.id)
    return order


class DictRedis:
    """In-memory stand-in for the handful of Redis calls the cache makes."""

    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def scan_iter(self, match='*', count=None):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def delete(self, *keys):
        return sum(1 for key in keys if self.store.pop(key, None) is not None)


@pytest.fixture
def live_cache(monkeypatch, session):
    """The application cache switched on, backed by a DictRedis."""
    cache = get_cache()
    monkeypatch.setattr(cache, 'client', DictRedis())
    monkeypatch.setattr(cache, 'enabled', True)
    return cache
