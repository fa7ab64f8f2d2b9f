"""Orders blueprint - checkout, order history and status updates."""
import logging

from flask import Blueprint, jsonify, g, current_app

from marketplace.database import get_session
from marketplace.exceptions import ValidationError
from marketplace.middleware import require_login
from marketplace.services import order_service
from marketplace.blueprints.metrics import orders_created_total
from marketplace.utils.request_args import json_body, int_value, amount_value, page_args
from marketplace.utils.serializers import serialize_order, pagination

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__, url_prefix='/api')


def _order_page(result):
    return {
        'orders': [serialize_order(o) for o in result['orders']],
        'pagination': pagination(result['page'], result['limit'], result['total']),
    }


@orders_bp.route('/orders', methods=['POST'])
@require_login
def create_order():
    """
    Create an order from the cart.

    Body: billing_address_id, shipping_address_id, coupon_code?,
    shipping_amount?, tax_amount?, notes?
    """
    data = json_body()
    order, coupon_applied = order_service.create_order(
        get_session(),
        g.user_id,
        billing_address_id=int_value(data.get('billing_address_id'), 'billing_address_id', required=True),
        shipping_address_id=int_value(data.get('shipping_address_id'), 'shipping_address_id', required=True),
        coupon_code=data.get('coupon_code') or None,
        shipping_amount=amount_value(data.get('shipping_amount'), 'shipping_amount'),
        tax_amount=amount_value(data.get('tax_amount'), 'tax_amount'),
        notes=data.get('notes'),
        currency=current_app.config.get('DEFAULT_CURRENCY', 'USD')
    )
    orders_created_total.labels(coupon_applied=str(coupon_applied).lower()).inc()
    payload = serialize_order(order)
    payload['coupon_applied'] = coupon_applied
    return jsonify(payload), 201


@orders_bp.route('/orders', methods=['GET'])
@require_login
def list_orders():
    page, limit = page_args()
    result = order_service.list_orders(get_session(), g.user_id, page, limit)
    return jsonify(_order_page(result))


@orders_bp.route('/orders/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id):
    return jsonify(serialize_order(order_service.get_order(get_session(), order_id, g.user_id)))


@orders_bp.route('/orders/<int:order_id>/status', methods=['PATCH'])
@require_login
def update_status(order_id):
    status = json_body().get('status')
    if not status:
        raise ValidationError('status is required')
    order = order_service.update_status(get_session(), order_id, status, g.user_id)
    return jsonify(serialize_order(order))


@orders_bp.route('/orders/<int:order_id>/cancel', methods=['POST'])
@require_login
def cancel_order(order_id):
    order = order_service.cancel_order(get_session(), order_id, g.user_id)
    return jsonify(serialize_order(order))


@orders_bp.route('/seller/orders', methods=['GET'])
@require_login
def seller_orders():
    page, limit = page_args()
    result = order_service.list_seller_orders(get_session(), g.user_id, page, limit)
    return jsonify(_order_page(result))
