"""Users blueprint - profile, addresses and wishlist of the current user."""
from flask import Blueprint, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import user_service
from marketplace.utils.request_args import json_body
from marketplace.utils.serializers import serialize_user, serialize_address, serialize_wishlist_item

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('/me', methods=['GET'])
@require_login
def get_profile():
    return jsonify(serialize_user(user_service.get_profile(get_session(), g.user_id)))


@users_bp.route('/me', methods=['PATCH'])
@require_login
def update_profile():
    user = user_service.update_profile(get_session(), g.user_id, json_body())
    return jsonify(serialize_user(user))


@users_bp.route('/me/addresses', methods=['GET'])
@require_login
def list_addresses():
    addresses = user_service.list_addresses(get_session(), g.user_id)
    return jsonify({'addresses': [serialize_address(a) for a in addresses]})


@users_bp.route('/me/addresses', methods=['POST'])
@require_login
def create_address():
    address = user_service.create_address(get_session(), g.user_id, json_body())
    return jsonify(serialize_address(address)), 201


@users_bp.route('/me/addresses/<int:address_id>', methods=['PATCH'])
@require_login
def update_address(address_id):
    address = user_service.update_address(get_session(), g.user_id, address_id, json_body())
    return jsonify(serialize_address(address))


@users_bp.route('/me/addresses/<int:address_id>', methods=['DELETE'])
@require_login
def delete_address(address_id):
    user_service.delete_address(get_session(), g.user_id, address_id)
    return '', 204


@users_bp.route('/me/wishlist', methods=['GET'])
@require_login
def get_wishlist():
    items = user_service.get_wishlist(get_session(), g.user_id)
    return jsonify({'items': [serialize_wishlist_item(item) for item in items]})


@users_bp.route('/me/wishlist/<int:product_id>', methods=['POST'])
@require_login
def add_to_wishlist(product_id):
    item = user_service.add_to_wishlist(get_session(), g.user_id, product_id)
    return jsonify(serialize_wishlist_item(item)), 201


@users_bp.route('/me/wishlist/<int:product_id>', methods=['DELETE'])
@require_login
def remove_from_wishlist(product_id):
    user_service.remove_from_wishlist(get_session(), g.user_id, product_id)
    return '', 204
