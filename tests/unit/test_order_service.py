"""
Unit tests for checkout and order status transitions.
"""

import pytest
import re
from datetime import datetime, timezone
from decimal import Decimal

from marketplace.exceptions import (
    EmptyCartError, ProductUnavailableError, AddressNotFoundError, NotFoundError,
    ForbiddenError, InvalidStatusError, InvalidTransitionError,
    AlreadyCancelledError, CannotCancelDeliveredError
)
from marketplace.models import CartItem, Coupon, Order, OrderStatus
from marketplace.services import order_service


def _checkout(session, buyer, billing_address, shipping_address, **kwargs):
    return order_service.create_order(
        session, buyer.id, billing_address.id, shipping_address.id, **kwargs
    )


class TestCalculateTotals:

    def test_default_tax_is_eight_percent(self):
        totals = order_service.calculate_totals(Decimal('55.00'))
        assert totals['tax_amount'] == Decimal('4.40')
        assert totals['shipping_amount'] == Decimal('0.00')
        assert totals['total_amount'] == Decimal('59.40')

    def test_explicit_tax_shipping_and_discount(self):
        totals = order_service.calculate_totals(
            Decimal('100.00'), shipping_amount=Decimal('7.50'),
            tax_amount=Decimal('0'), discount_amount=Decimal('10.00')
        )
        assert totals['total_amount'] == Decimal('97.50')


class TestOrderNumber:

    def test_format(self):
        number = order_service.generate_order_number(42, datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert re.fullmatch(r'ORD-[0-9A-Z]+-000042', number)

    def test_unique_per_id_at_same_instant(self):
        now = datetime.now(timezone.utc)
        assert order_service.generate_order_number(1, now) != order_service.generate_order_number(2, now)


class TestCreateOrder:

    def test_totals_without_coupon(self, session, buyer, cart_55, billing_address, shipping_address):
        order, coupon_applied = _checkout(session, buyer, billing_address, shipping_address)

        assert coupon_applied is False
        assert order.status == OrderStatus.PENDING
        assert order.subtotal == Decimal('55.00')
        assert order.tax_amount == Decimal('4.40')
        assert order.discount_amount == Decimal('0.00')
        assert order.total_amount == Decimal('59.40')
        assert order.order_number.startswith('ORD-')
        assert len(order.lines) == 2

    def test_lines_snapshot_prices(self, session, buyer, product, cart_55, billing_address, shipping_address):
        order, _ = _checkout(session, buyer, billing_address, shipping_address)

        product.price = Decimal('99.00')
        session.commit()
        session.refresh(order)

        line = next(line for line in order.lines if line.product_id == product.id)
        assert line.price == Decimal('20.00')
        assert line.quantity == 2
        assert line.total == Decimal('40.00')

    def test_cart_is_cleared(self, session, buyer, cart_55, billing_address, shipping_address):
        _checkout(session, buyer, billing_address, shipping_address)
        assert session.query(CartItem).filter_by(user_id=buyer.id).count() == 0

    def test_fixed_coupon(self, session, buyer, cart_55, billing_address, shipping_address, save20):
        order, coupon_applied = _checkout(session, buyer, billing_address, shipping_address, coupon_code='SAVE20')

        assert coupon_applied is True
        assert order.discount_amount == Decimal('20.00')
        assert order.total_amount == Decimal('39.40')
        assert order.coupon_code == 'SAVE20'
        assert session.query(Coupon).filter_by(code='SAVE20').one().used_count == 1

    @pytest.mark.parametrize('coupon_fixture', ['expired_coupon', 'min_amount_coupon', 'exhausted_coupon'])
    def test_invalid_coupon_is_ignored(self, request, session, buyer, cart_55, billing_address,
                                       shipping_address, coupon_fixture):
        coupon = request.getfixturevalue(coupon_fixture)
        used_before = coupon.used_count

        order, coupon_applied = _checkout(session, buyer, billing_address, shipping_address, coupon_code=coupon.code)

        assert coupon_applied is False
        assert order.discount_amount == Decimal('0.00')
        assert order.total_amount == Decimal('59.40')
        assert order.coupon_code is None
        session.refresh(coupon)
        assert coupon.used_count == used_before

    def test_unknown_coupon_is_ignored(self, session, buyer, cart_55, billing_address, shipping_address):
        order, coupon_applied = _checkout(session, buyer, billing_address, shipping_address, coupon_code='NOPE')
        assert coupon_applied is False
        assert order.total_amount == Decimal('59.40')

    def test_percentage_coupon_capped(self, session, buyer, untracked_product, billing_address,
                                      shipping_address, percent10_capped):
        session.add(CartItem(user_id=buyer.id, product_id=untracked_product.id, quantity=1))
        session.commit()

        order, coupon_applied = _checkout(
            session, buyer, billing_address, shipping_address, coupon_code='TEN', tax_amount=Decimal('0')
        )
        assert coupon_applied is True
        assert order.discount_amount == Decimal('30.00')
        assert order.total_amount == Decimal('470.00')

    def test_empty_cart(self, session, buyer, billing_address, shipping_address):
        with pytest.raises(EmptyCartError):
            _checkout(session, buyer, billing_address, shipping_address)
        assert session.query(Order).count() == 0

    def test_inactive_product_names_it(self, session, buyer, product, cart_55, billing_address, shipping_address):
        product.is_active = False
        session.commit()

        with pytest.raises(ProductUnavailableError) as exc:
            _checkout(session, buyer, billing_address, shipping_address)

        assert exc.value.product_id == product.id
        assert 'Widget' in exc.value.message
        assert session.query(Order).count() == 0
        assert session.query(CartItem).filter_by(user_id=buyer.id).count() == 2

    def test_inactive_variant_names_it(self, session, buyer, product, variant, billing_address, shipping_address):
        session.add(CartItem(user_id=buyer.id, product_id=product.id, variant_id=variant.id, quantity=1))
        variant.is_active = False
        session.commit()

        with pytest.raises(ProductUnavailableError) as exc:
            _checkout(session, buyer, billing_address, shipping_address)

        assert exc.value.product_id == product.id
        assert 'Widget Large' in exc.value.message
        assert session.query(Order).count() == 0

    def test_address_of_another_user(self, session, buyer, cart_55, billing_address, foreign_address):
        with pytest.raises(AddressNotFoundError):
            _checkout(session, buyer, billing_address, foreign_address)
        assert session.query(Order).count() == 0

    def test_order_numbers_are_unique(self, session, buyer, product, billing_address, shipping_address):
        numbers = set()
        for _ in range(3):
            session.add(CartItem(user_id=buyer.id, product_id=product.id, quantity=1))
            session.commit()
            order, _ = _checkout(session, buyer, billing_address, shipping_address)
            numbers.add(order.order_number)
        assert len(numbers) == 3


class TestQueries:

    def test_list_orders_paginates(self, session, buyer, order):
        result = order_service.list_orders(session, buyer.id, page=1, limit=10)
        assert result['total'] == 1
        assert result['orders'][0].id == order.id

    def test_get_order_of_another_user(self, session, other_user, order):
        with pytest.raises(NotFoundError):
            order_service.get_order(session, order.id, other_user.id)

    def test_seller_orders(self, session, seller, order):
        result = order_service.list_seller_orders(session, seller.id)
        assert [o.id for o in result['orders']] == [order.id]

    def test_seller_orders_other_vendor(self, session, other_seller, order):
        assert order_service.list_seller_orders(session, other_seller.id)['total'] == 0

    def test_seller_orders_requires_vendor_profile(self, session, buyer, order):
        with pytest.raises(ForbiddenError):
            order_service.list_seller_orders(session, buyer.id)


class TestUpdateStatus:

    def test_seller_moves_order_forward(self, session, seller, order):
        updated = order_service.update_status(session, order.id, 'PROCESSING', seller.id)
        assert updated.status == OrderStatus.PROCESSING

        updated = order_service.update_status(session, order.id, 'SHIPPED', seller.id)
        assert updated.status == OrderStatus.SHIPPED
        assert updated.shipped_at is not None

        updated = order_service.update_status(session, order.id, 'delivered', seller.id)
        assert updated.status == OrderStatus.DELIVERED
        assert updated.delivered_at is not None

    def test_buyer_may_update(self, session, buyer, order):
        assert order_service.update_status(session, order.id, 'PROCESSING', buyer.id).status == OrderStatus.PROCESSING

    def test_unrelated_user_is_forbidden(self, session, other_user, order):
        with pytest.raises(ForbiddenError):
            order_service.update_status(session, order.id, 'SHIPPED', other_user.id)

    def test_seller_without_lines_is_forbidden(self, session, other_seller, order):
        with pytest.raises(ForbiddenError):
            order_service.update_status(session, order.id, 'SHIPPED', other_seller.id)

    def test_invalid_status_value(self, session, seller, order):
        with pytest.raises(InvalidStatusError):
            order_service.update_status(session, order.id, 'LOST', seller.id)

    def test_missing_order(self, session, seller):
        with pytest.raises(NotFoundError):
            order_service.update_status(session, 9999, 'SHIPPED', seller.id)

    def test_backwards_transition(self, session, seller, order):
        order_service.update_status(session, order.id, 'SHIPPED', seller.id)
        with pytest.raises(InvalidTransitionError):
            order_service.update_status(session, order.id, 'PENDING', seller.id)

    def test_cancelled_is_terminal(self, session, buyer, seller, order):
        order_service.cancel_order(session, order.id, buyer.id)
        with pytest.raises(InvalidTransitionError):
            order_service.update_status(session, order.id, 'PROCESSING', seller.id)


class TestCancelOrder:

    def test_cancel_pending(self, session, buyer, order):
        assert order_service.cancel_order(session, order.id, buyer.id).status == OrderStatus.CANCELLED

    def test_cancel_twice(self, session, buyer, order):
        order_service.cancel_order(session, order.id, buyer.id)
        with pytest.raises(AlreadyCancelledError):
            order_service.cancel_order(session, order.id, buyer.id)

    def test_cancel_delivered(self, session, buyer, seller, order):
        order_service.update_status(session, order.id, 'DELIVERED', seller.id)
        with pytest.raises(CannotCancelDeliveredError):
            order_service.cancel_order(session, order.id, buyer.id)

    def test_only_buyer_can_cancel(self, session, seller, order):
        with pytest.raises(NotFoundError):
            order_service.cancel_order(session, order.id, seller.id)
