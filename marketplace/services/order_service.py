"""
Order service - checkout, order queries and status transitions.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any, Tuple

from sqlalchemy.orm import Session, joinedload

from marketplace.models import (
    Order, OrderLine, OrderStatus, Product, VendorProfile
)
from marketplace.exceptions import (
    EmptyCartError, ProductUnavailableError, NotFoundError, ForbiddenError,
    InvalidStatusError, InvalidTransitionError, AlreadyCancelledError,
    CannotCancelDeliveredError
)
from marketplace.services import cart_service, coupon_service, user_service
from marketplace.utils.number_format import to_money

logger = logging.getLogger(__name__)

# Flat tax applied when the caller does not supply one
DEFAULT_TAX_RATE = Decimal('0.08')

ORDER_NUMBER_PREFIX = 'ORD'

_BASE36 = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'

# Forward order of the lifecycle; CANCELLED is handled separately
_STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
}


def _base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return ''.join(reversed(digits))


def generate_order_number(sequence: int, now: Optional[datetime] = None) -> str:
    """
    ORD-<base36 millisecond timestamp>-<zero-padded sequence>.

    The sequence is the order's identity value, assigned after the header is
    flushed. It replaces the count-of-existing-orders-plus-one suffix, which
    could give two concurrent checkouts the same number.
    """
    now = now or datetime.now(timezone.utc)
    millis = int(now.timestamp() * 1000)
    return f'{ORDER_NUMBER_PREFIX}-{_base36(millis)}-{sequence:06d}'


def calculate_totals(
    subtotal: Decimal,
    shipping_amount: Optional[Decimal] = None,
    tax_amount: Optional[Decimal] = None,
    discount_amount: Decimal = Decimal('0')
) -> Dict[str, Decimal]:
    """total = subtotal + shipping + tax - discount; tax defaults to 8% of the subtotal."""
    subtotal = to_money(subtotal)
    shipping = to_money(shipping_amount if shipping_amount is not None else 0)
    tax = to_money(tax_amount) if tax_amount is not None else to_money(subtotal * DEFAULT_TAX_RATE)
    discount = to_money(discount_amount)
    return {
        'subtotal': subtotal,
        'shipping_amount': shipping,
        'tax_amount': tax,
        'discount_amount': discount,
        'total_amount': subtotal + shipping + tax - discount,
    }


def _order_query(session: Session):
    return session.query(Order).options(
        joinedload(Order.lines).joinedload(OrderLine.product),
        joinedload(Order.lines).joinedload(OrderLine.variant),
        joinedload(Order.billing_address),
        joinedload(Order.shipping_address),
        joinedload(Order.payments),
    )


def create_order(
    session: Session,
    user_id: int,
    billing_address_id: int,
    shipping_address_id: int,
    coupon_code: Optional[str] = None,
    shipping_amount: Optional[Decimal] = None,
    tax_amount: Optional[Decimal] = None,
    notes: Optional[str] = None,
    currency: str = 'USD'
) -> Tuple[Order, bool]:
    """
    Create an order from the user's cart.

    Steps: load cart, verify every product and variant is still active,
    verify both addresses belong to the user, compute tax/discount/total, persist the
    order header with price snapshots per line, redeem the coupon if it was
    applied, then clear the cart.

    Returns:
        (order, coupon_applied)

    Raises:
        EmptyCartError, ProductUnavailableError, AddressNotFoundError
    """
    cart = cart_service.get_cart(session, user_id)
    items = cart['items']
    if not items:
        raise EmptyCartError()

    for item in items:
        if not item.product.is_active:
            raise ProductUnavailableError(item.product.id, item.product.title)
        if item.variant is not None and not item.variant.is_active:
            raise ProductUnavailableError(item.product.id, item.variant.title)

    billing_address = user_service.get_user_address(session, user_id, billing_address_id)
    shipping_address = user_service.get_user_address(session, user_id, shipping_address_id)

    subtotal = cart['subtotal']
    evaluation = coupon_service.CouponEvaluation(False, Decimal('0.00'))
    if coupon_code:
        evaluation = coupon_service.preview_coupon(session, coupon_code, subtotal)
        if not evaluation.applied:
            logger.info(f"Coupon '{coupon_code}' ignored for user {user_id}: {evaluation.reason}")

    totals = calculate_totals(subtotal, shipping_amount, tax_amount, evaluation.discount)

    try:
        order = Order(
            user_id=user_id,
            billing_address_id=billing_address.id,
            shipping_address_id=shipping_address.id,
            subtotal=totals['subtotal'],
            tax_amount=totals['tax_amount'],
            shipping_amount=totals['shipping_amount'],
            discount_amount=totals['discount_amount'],
            total_amount=totals['total_amount'],
            status=OrderStatus.PENDING,
            currency=currency,
            coupon_code=evaluation.coupon.code if evaluation.applied else None,
            notes=notes
        )
        for item in items:
            price = item.unit_price
            order.lines.append(OrderLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                price=price,
                total=to_money(price * item.quantity)
            ))
        session.add(order)
        session.flush()

        order.order_number = generate_order_number(order.id)

        if evaluation.applied:
            coupon_service.redeem_coupon(session, evaluation.coupon)

        cart_service.clear_cart(session, user_id, commit=False)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Order {order.order_number} created for user {user_id}: "
        f"total={order.total_amount} discount={order.discount_amount}"
    )
    return get_order(session, order.id, user_id), evaluation.applied


def list_orders(session: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    query = session.query(Order).filter(Order.user_id == user_id)
    total = query.count()
    orders = (
        _order_query(session)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {'orders': orders, 'page': page, 'limit': limit, 'total': total}


def get_order(session: Session, order_id: int, user_id: int) -> Order:
    order = _order_query(session).filter(Order.id == order_id, Order.user_id == user_id).first()
    if not order:
        raise NotFoundError('Order not found')
    return order


def seller_owns_order(session: Session, order_id: int, user_id: int) -> bool:
    """True when at least one line of the order is a product sold by this user."""
    match = (
        session.query(OrderLine.id)
        .join(Product, Product.id == OrderLine.product_id)
        .join(VendorProfile, VendorProfile.id == Product.vendor_id)
        .filter(OrderLine.order_id == order_id, VendorProfile.user_id == user_id)
        .first()
    )
    return match is not None


def _parse_status(status) -> OrderStatus:
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(str(status).upper())
    except ValueError:
        raise InvalidStatusError(status)


def _check_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Forward-only lifecycle. CANCELLED is reachable from anything but DELIVERED and is terminal."""
    if requested == OrderStatus.CANCELLED:
        if current == OrderStatus.CANCELLED:
            raise AlreadyCancelledError()
        if current == OrderStatus.DELIVERED:
            raise CannotCancelDeliveredError()
        return
    if current == OrderStatus.CANCELLED:
        raise InvalidTransitionError(current.value, requested.value)
    if _STATUS_RANK[requested] < _STATUS_RANK[current]:
        raise InvalidTransitionError(current.value, requested.value)


def update_status(session: Session, order_id: int, status, user_id: int) -> Order:
    """
    Move an order to a new status.

    Allowed for the order's buyer or for a seller owning at least one of its
    line items. SHIPPED stamps shipped_at, DELIVERED stamps delivered_at.

    Raises:
        InvalidStatusError, NotFoundError, ForbiddenError,
        AlreadyCancelledError, CannotCancelDeliveredError, InvalidTransitionError
    """
    requested = _parse_status(status)

    order = session.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError('Order not found')

    if order.user_id != user_id and not seller_owns_order(session, order.id, user_id):
        raise ForbiddenError('You are not allowed to update this order')

    _check_transition(order.status, requested)

    now = datetime.now(timezone.utc)
    previous = order.status
    order.status = requested
    if requested == OrderStatus.SHIPPED:
        order.shipped_at = now
    elif requested == OrderStatus.DELIVERED:
        order.delivered_at = now
    session.commit()

    logger.info(f"Order {order.order_number} status {previous.value} -> {requested.value} by user {user_id}")
    return _order_query(session).filter(Order.id == order.id).first()


def cancel_order(session: Session, order_id: int, user_id: int) -> Order:
    """Buyer-initiated cancellation."""
    order = session.query(Order).filter(Order.id == order_id, Order.user_id == user_id).first()
    if not order:
        raise NotFoundError('Order not found')
    return update_status(session, order.id, OrderStatus.CANCELLED, user_id)


def list_seller_orders(session: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """Orders containing at least one product sold by the requesting seller."""
    vendor = session.query(VendorProfile).filter(VendorProfile.user_id == user_id).first()
    if not vendor:
        raise ForbiddenError('Only registered sellers can view seller orders')

    order_ids = (
        session.query(OrderLine.order_id)
        .join(Product, Product.id == OrderLine.product_id)
        .filter(Product.vendor_id == vendor.id)
        .distinct()
    )
    query = session.query(Order).filter(Order.id.in_(order_ids))
    total = query.count()
    orders = (
        _order_query(session)
        .filter(Order.id.in_(order_ids))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {'orders': orders, 'page': page, 'limit': limit, 'total': total}

