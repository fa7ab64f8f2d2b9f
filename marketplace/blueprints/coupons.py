"""Coupons blueprint."""
from flask import Blueprint, jsonify

from marketplace.database import get_session
from marketplace.exceptions import ValidationError
from marketplace.middleware import require_login
from marketplace.services import coupon_service
from marketplace.utils.number_format import money_str
from marketplace.utils.request_args import json_body, amount_value

coupons_bp = Blueprint('coupons', __name__, url_prefix='/api/coupons')


@coupons_bp.route('/validate', methods=['POST'])
@require_login
def validate_coupon():
    """Preview a coupon against a subtotal without redeeming it."""
    data = json_body()
    code = (data.get('code') or '').strip()
    if not code:
        raise ValidationError('code is required')
    subtotal = amount_value(data.get('subtotal'), 'subtotal', required=True)

    evaluation = coupon_service.preview_coupon(get_session(), code, subtotal)
    return jsonify({
        'code': code,
        'valid': evaluation.applied,
        'discount': money_str(evaluation.discount),
        'reason': evaluation.reason,
    })
