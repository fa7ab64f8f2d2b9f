"""Catalog blueprint - products and categories."""
import logging

from flask import Blueprint, jsonify, request, g

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import catalog_service
from marketplace.utils.request_args import json_body, query_int, query_amount, query_bool
from marketplace.utils.serializers import serialize_category, serialize_product

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


# Products

@catalog_bp.route('/products', methods=['GET'])
def list_products():
    """
    Product listing.

    Query: page, limit (<= 100), category (id or slug), search, min_price,
    max_price, sort_by (created_at|price|title), sort_order (asc|desc), is_active.
    """
    result = catalog_service.list_products(
        get_session(),
        page=query_int('page', default=1, minimum=1),
        limit=query_int('limit', default=20, minimum=1, maximum=catalog_service.MAX_PAGE_SIZE),
        category=request.args.get('category') or None,
        search=(request.args.get('search') or '').strip() or None,
        min_price=query_amount('min_price'),
        max_price=query_amount('max_price'),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc').lower(),
        is_active=query_bool('is_active', True)
    )
    return jsonify(result)


@catalog_bp.route('/products', methods=['POST'])
@require_login
def create_product():
    product = catalog_service.create_product(get_session(), g.user_id, json_body())
    return jsonify(catalog_service.with_ratings(get_session(), [product], detailed=True)[0]), 201


@catalog_bp.route('/products/featured', methods=['GET'])
def featured_products():
    session = get_session()
    products = catalog_service.get_featured(session, query_int('limit', default=10, minimum=1, maximum=50))
    return jsonify({'products': catalog_service.with_ratings(session, products)})


@catalog_bp.route('/products/slug/<slug>', methods=['GET'])
def get_product_by_slug(slug):
    session = get_session()
    product = catalog_service.get_product_by_slug(session, slug)
    return jsonify(catalog_service.with_ratings(session, [product], detailed=True)[0])


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    session = get_session()
    product = catalog_service.get_product(session, product_id)
    return jsonify(catalog_service.with_ratings(session, [product], detailed=True)[0])


@catalog_bp.route('/products/<int:product_id>', methods=['PATCH'])
@require_login
def update_product(product_id):
    session = get_session()
    product = catalog_service.update_product(session, product_id, g.user_id, json_body())
    return jsonify(catalog_service.with_ratings(session, [product], detailed=True)[0])


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_login
def delete_product(product_id):
    product = catalog_service.deactivate_product(get_session(), product_id, g.user_id)
    return jsonify(serialize_product(product))


@catalog_bp.route('/products/<int:product_id>/related', methods=['GET'])
def related_products(product_id):
    session = get_session()
    products = catalog_service.get_related(session, product_id, query_int('limit', default=4, minimum=1, maximum=20))
    return jsonify({'products': catalog_service.with_ratings(session, products)})


# Categories

@catalog_bp.route('/categories', methods=['GET'])
def list_categories():
    return jsonify({'categories': catalog_service.list_categories(get_session())})


@catalog_bp.route('/categories/tree', methods=['GET'])
def category_tree():
    return jsonify({'categories': catalog_service.get_category_tree(get_session())})


@catalog_bp.route('/categories', methods=['POST'])
@require_login
def create_category():
    category = catalog_service.create_category(get_session(), g.user_id, json_body())
    return jsonify(serialize_category(category)), 201


@catalog_bp.route('/categories/<id_or_slug>', methods=['GET'])
def get_category(id_or_slug):
    category = catalog_service.get_category(get_session(), id_or_slug)
    return jsonify(serialize_category(category, include_children=True))


@catalog_bp.route('/categories/<id_or_slug>', methods=['PATCH'])
@require_login
def update_category(id_or_slug):
    category = catalog_service.update_category(get_session(), id_or_slug, g.user_id, json_body())
    return jsonify(serialize_category(category))


@catalog_bp.route('/categories/<id_or_slug>', methods=['DELETE'])
@require_login
def delete_category(id_or_slug):
    category = catalog_service.deactivate_category(get_session(), id_or_slug, g.user_id)
    return jsonify(serialize_category(category))
