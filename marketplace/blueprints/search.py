"""Search blueprint."""
from flask import Blueprint, jsonify, request

from marketplace.database import get_session
from marketplace.services import search_service
from marketplace.utils.request_args import query_int, query_amount

search_bp = Blueprint('search', __name__, url_prefix='/api/search')


@search_bp.route('', methods=['GET'])
def search():
    result = search_service.search(
        get_session(),
        request.args.get('q', ''),
        page=query_int('page', default=1, minimum=1),
        limit=query_int('limit', default=20, minimum=1, maximum=100),
        category=request.args.get('category') or None,
        min_price=query_amount('min_price'),
        max_price=query_amount('max_price'),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc').lower()
    )
    return jsonify(result)


@search_bp.route('/autocomplete', methods=['GET'])
def autocomplete():
    suggestions = search_service.autocomplete(
        get_session(),
        request.args.get('q', ''),
        limit=query_int('limit', default=5, minimum=1, maximum=20)
    )
    return jsonify({'suggestions': suggestions})
