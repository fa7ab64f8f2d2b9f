"""Cart blueprint - the authenticated user's cart."""
from flask import Blueprint, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import cart_service
from marketplace.utils.request_args import json_body, int_value
from marketplace.utils.serializers import serialize_cart, serialize_cart_item

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


@cart_bp.route('', methods=['GET'])
@require_login
def get_cart():
    cart = cart_service.get_cart(get_session(), g.user_id)
    return jsonify(serialize_cart(cart))


@cart_bp.route('/count', methods=['GET'])
@require_login
def get_count():
    return jsonify({'count': cart_service.get_cart_item_count(get_session(), g.user_id)})


@cart_bp.route('/items', methods=['POST'])
@require_login
def add_item():
    data = json_body()
    item = cart_service.add_to_cart(
        get_session(),
        g.user_id,
        product_id=int_value(data.get('product_id'), 'product_id', required=True),
        quantity=int_value(data.get('quantity'), 'quantity', default=1),
        variant_id=int_value(data.get('variant_id'), 'variant_id')
    )
    return jsonify(serialize_cart_item(item)), 201


@cart_bp.route('/items/<int:item_id>', methods=['PATCH'])
@require_login
def update_item(item_id):
    data = json_body()
    quantity = int_value(data.get('quantity'), 'quantity', required=True)
    item = cart_service.update_cart_item(get_session(), g.user_id, item_id, quantity)
    if item is None:
        return jsonify({'removed': True, 'id': item_id})
    return jsonify(serialize_cart_item(item))


@cart_bp.route('/items/<int:item_id>', methods=['DELETE'])
@require_login
def remove_item(item_id):
    cart_service.remove_from_cart(get_session(), g.user_id, item_id)
    return '', 204


@cart_bp.route('', methods=['DELETE'])
@require_login
def clear_cart():
    removed = cart_service.clear_cart(get_session(), g.user_id)
    return jsonify({'removed': removed})
