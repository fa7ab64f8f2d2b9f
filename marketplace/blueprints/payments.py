"""Payments blueprint - intents, confirmation and refunds."""
from flask import Blueprint, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_login
from marketplace.services import payment_service
from marketplace.services.payment_gateways import get_gateway
from marketplace.utils.request_args import json_body, int_value, amount_value
from marketplace.utils.serializers import serialize_payment

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


@payments_bp.route('/intent', methods=['POST'])
@require_login
def create_intent():
    data = json_body()
    result = payment_service.create_payment_intent(
        get_session(),
        get_gateway(),
        order_id=int_value(data.get('order_id'), 'order_id', required=True),
        amount=amount_value(data.get('amount'), 'amount'),
        currency=(data.get('currency') or 'usd'),
        user_id=g.user_id
    )
    return jsonify({
        'payment': serialize_payment(result['payment']),
        'client_secret': result['client_secret'],
        'payment_intent_id': result['payment_intent_id'],
        'gateway_available': result['gateway_available'],
    }), 201


@payments_bp.route('/<int:payment_id>/confirm', methods=['POST'])
@require_login
def confirm(payment_id):
    data = json_body()
    payment = payment_service.confirm_payment(
        get_session(),
        get_gateway(),
        payment_id,
        transaction_id=data.get('transaction_id'),
        user_id=g.user_id
    )
    return jsonify({'success': True, 'payment': serialize_payment(payment)})


@payments_bp.route('/<int:payment_id>/refund', methods=['POST'])
@require_login
def refund(payment_id):
    data = json_body()
    result = payment_service.refund_payment(
        get_session(),
        get_gateway(),
        payment_id,
        amount=amount_value(data.get('amount'), 'amount'),
        user_id=g.user_id
    )
    return jsonify({
        'success': True,
        'refund_id': result['refund_id'],
        'payment': serialize_payment(result['payment']),
    })
