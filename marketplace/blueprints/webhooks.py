"""
Webhooks blueprint for payment gateway notifications.
Signatures are verified by the gateway adapter before any state changes.
"""

import logging

from flask import Blueprint, request, jsonify

from marketplace.database import get_session
from marketplace.services import payment_service
from marketplace.services.payment_gateways import get_gateway, webhook_secret, UnavailableGateway

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/api/webhooks')


def _gateway_named(name: str):
    """The configured gateway if it matches the webhook source, else an unavailable one."""
    gateway = get_gateway()
    if gateway.name != name:
        logger.warning(f"Webhook for '{name}' received but configured gateway is '{gateway.name}'")
        return UnavailableGateway()
    return gateway


def _process(name: str, signature_header: str):
    gateway = _gateway_named(name)
    result = payment_service.handle_webhook(
        get_session(),
        gateway,
        request.get_data(),
        request.headers.get(signature_header, ''),
        webhook_secret(gateway)
    )
    return jsonify(result), 200


@webhooks_bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """Stripe events, signed with the Stripe-Signature header."""
    return _process('stripe', 'Stripe-Signature')


@webhooks_bp.route('/mercadopago', methods=['POST'])
def mercadopago_webhook():
    """Mercado Pago notifications, signed with X-Signature (hex HMAC-SHA256 of the body)."""
    return _process('mercadopago', 'X-Signature')
