"""Reviews blueprint."""
from flask import Blueprint, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import review_service
from marketplace.utils.request_args import json_body, page_args, query_bool
from marketplace.utils.serializers import serialize_review, pagination

reviews_bp = Blueprint('reviews', __name__, url_prefix='/api')


@reviews_bp.route('/products/<int:product_id>/reviews', methods=['GET'])
def list_reviews(product_id):
    page, limit = page_args()
    result = review_service.list_reviews(
        get_session(), product_id, page, limit,
        approved_only=query_bool('approved_only', True)
    )
    return jsonify({
        'reviews': [serialize_review(r) for r in result['reviews']],
        'average_rating': result['average_rating'],
        'total': result['total'],
        'pagination': pagination(result['page'], result['limit'], result['total']),
    })


@reviews_bp.route('/products/<int:product_id>/reviews', methods=['POST'])
@require_login
def create_review(product_id):
    data = json_body()
    review = review_service.create_review(
        get_session(), g.user_id, product_id,
        rating=data.get('rating'),
        title=data.get('title'),
        comment=data.get('comment')
    )
    return jsonify(serialize_review(review)), 201


@reviews_bp.route('/reviews/<int:review_id>', methods=['GET'])
def get_review(review_id):
    return jsonify(serialize_review(review_service.get_review(get_session(), review_id)))


@reviews_bp.route('/reviews/<int:review_id>', methods=['PATCH'])
@require_login
def update_review(review_id):
    review = review_service.update_review(get_session(), review_id, g.user_id, json_body())
    return jsonify(serialize_review(review))


@reviews_bp.route('/reviews/<int:review_id>', methods=['DELETE'])
@require_login
def delete_review(review_id):
    review_service.delete_review(get_session(), review_id, g.user_id)
    return '', 204


@reviews_bp.route('/reviews/<int:review_id>/approve', methods=['POST'])
@require_login
def approve_review(review_id):
    return jsonify(serialize_review(review_service.approve_review(get_session(), review_id, g.user_id)))


@reviews_bp.route('/reviews/<int:review_id>/reject', methods=['POST'])
@require_login
def reject_review(review_id):
    return jsonify(serialize_review(review_service.reject_review(get_session(), review_id, g.user_id)))
