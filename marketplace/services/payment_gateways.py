"""
Payment gateway adapters.

Every gateway exposes the same four calls (create_intent, retrieve_intent,
construct_event, create_refund) and raises GatewayError on any failure, so
the payment service never has to know which SDK is behind it.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional

import mercadopago  # type: ignore
import stripe
from flask import Flask, current_app

from marketplace.exceptions import GatewayError, GatewayUnavailableError
from marketplace.utils.number_format import to_cents

logger = logging.getLogger(__name__)

# Normalized status / event names shared by all gateways
INTENT_SUCCEEDED = 'succeeded'
EVENT_PAYMENT_SUCCEEDED = 'payment_intent.succeeded'


@dataclass
class PaymentIntent:
    """Gateway-side charge attempt."""
    id: str
    client_secret: Optional[str] = None
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayEvent:
    """Verified webhook event, reduced to what the payment service needs."""
    type: str
    intent_id: Optional[str] = None
    order_id: Optional[str] = None
    transaction_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Refund:
    id: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)


class UnavailableGateway:
    """Placeholder used when no gateway is configured."""

    name = 'none'
    available = False

    def _fail(self):
        raise GatewayUnavailableError('No payment gateway configured')

    def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        self._fail()

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self._fail()

    def construct_event(self, payload: bytes, signature: str, secret: str) -> GatewayEvent:
        self._fail()

    def create_refund(self, intent_id: str, amount: Decimal) -> Refund:
        self._fail()


class StripeGateway:
    """Stripe PaymentIntents, webhooks and refunds."""

    name = 'stripe'
    available = True

    def __init__(self, api_key: str):
        self.api_key = api_key

    def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount),
                currency=currency.lower(),
                metadata=metadata,
                api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.exception(f"[STRIPE] Error creating payment intent for order {metadata.get('order_id')}")
            raise GatewayError(str(e)) from e

        logger.info(f"[STRIPE] Payment intent created: {intent['id']} ({intent['amount']} {intent['currency']})")
        return PaymentIntent(
            id=intent['id'],
            client_secret=intent.get('client_secret'),
            status=intent.get('status'),
            raw=dict(intent)
        )

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.exception(f"[STRIPE] Error retrieving payment intent {intent_id}")
            raise GatewayError(str(e)) from e
        return PaymentIntent(
            id=intent['id'],
            client_secret=intent.get('client_secret'),
            status=intent.get('status'),
            raw=dict(intent)
        )

    def construct_event(self, payload: bytes, signature: str, secret: str) -> GatewayEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"[STRIPE] Webhook rejected: {e}")
            raise GatewayError('Invalid webhook signature') from e

        obj = event['data']['object']
        metadata = obj.get('metadata') or {}
        return GatewayEvent(
            type=event['type'],
            intent_id=obj.get('id'),
            order_id=metadata.get('order_id'),
            transaction_id=obj.get('id'),
            payload=dict(obj)
        )

    def create_refund(self, intent_id: str, amount: Decimal) -> Refund:
        try:
            refund = stripe.Refund.create(
                payment_intent=intent_id,
                amount=to_cents(amount),
                api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.exception(f"[STRIPE] Error refunding {intent_id}")
            raise GatewayError(str(e)) from e
        logger.info(f"[STRIPE] Refund {refund['id']} created for {intent_id}")
        return Refund(id=refund['id'], raw=dict(refund))


class MercadoPagoGateway:
    """
    Mercado Pago checkout preferences, payments and refunds.

    An intent is a checkout preference: its id is stored as the payment's
    transaction id and its init_point is handed to the client in place of a
    client secret. Confirmation and refunds work on the Mercado Pago payment id.
    """

    name = 'mercadopago'
    available = True

    # Mercado Pago payment status that counts as a successful charge
    APPROVED = 'approved'

    def __init__(self, access_token: str, return_url: Optional[str] = None):
        self.sdk = mercadopago.SDK(access_token)
        self.return_url = return_url

    @staticmethod
    def _check(response: Dict[str, Any], expected, action: str) -> Dict[str, Any]:
        if response.get('status') not in expected:
            logger.error(f"[MP] Error {action}: {response}")
            raise GatewayError(f"Mercado Pago {action} failed: {response.get('response')}")
        return response['response']

    def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        data = {
            'items': [{
                'title': f"Order {metadata.get('order_number') or metadata.get('order_id')}",
                'quantity': 1,
                'unit_price': float(amount),
                'currency_id': currency.upper(),
            }],
            'external_reference': str(metadata.get('order_id')),
            'metadata': metadata,
        }
        if self.return_url:
            data['back_urls'] = {
                'success': self.return_url,
                'failure': self.return_url,
                'pending': self.return_url,
            }

        try:
            response = self.sdk.preference().create(data)
        except Exception as e:
            logger.exception("[MP] Exception creating preference")
            raise GatewayError(str(e)) from e

        preference = self._check(response, (200, 201), 'creating preference')
        logger.info(f"[MP] Preference created: {preference['id']}")
        return PaymentIntent(
            id=str(preference['id']),
            client_secret=preference.get('init_point'),
            status='pending',
            raw=preference
        )

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        try:
            response = self.sdk.payment().get(intent_id)
        except Exception as e:
            logger.exception(f"[MP] Exception fetching payment {intent_id}")
            raise GatewayError(str(e)) from e

        payment = self._check(response, (200,), f'fetching payment {intent_id}')
        status = INTENT_SUCCEEDED if payment.get('status') == self.APPROVED else payment.get('status')
        return PaymentIntent(id=str(payment['id']), status=status, raw=payment)

    @staticmethod
    def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
        """Hex HMAC-SHA256 of the raw body, compared in constant time."""
        if not signature:
            return False
        expected = hmac.new(secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(signature, expected)

    def construct_event(self, payload: bytes, signature: str, secret: str) -> GatewayEvent:
        if not self.verify_signature(payload, signature, secret):
            logger.warning("[MP] Invalid webhook signature")
            raise GatewayError('Invalid webhook signature')

        try:
            data = json.loads(payload or b'{}')
        except ValueError as e:
            raise GatewayError('Malformed webhook payload') from e

        event_type = data.get('type')
        payment_id = (data.get('data') or {}).get('id')
        if event_type != 'payment' or not payment_id:
            return GatewayEvent(type=str(event_type), payload=data)

        # Notifications only carry the id; the status comes from the API
        payment = self.retrieve_intent(str(payment_id))
        raw = payment.raw
        if payment.status == INTENT_SUCCEEDED:
            event_type = EVENT_PAYMENT_SUCCEEDED
        else:
            event_type = f'payment.{payment.status}'
        return GatewayEvent(
            type=event_type,
            intent_id=raw.get('preference_id'),
            order_id=raw.get('external_reference'),
            transaction_id=payment.id,
            payload=raw
        )

    def create_refund(self, intent_id: str, amount: Decimal) -> Refund:
        try:
            response = self.sdk.refund().create(intent_id, {'amount': float(amount)})
        except Exception as e:
            logger.exception(f"[MP] Exception refunding payment {intent_id}")
            raise GatewayError(str(e)) from e

        refund = self._check(response, (200, 201), f'refunding payment {intent_id}')
        logger.info(f"[MP] Refund {refund.get('id')} created for payment {intent_id}")
        return Refund(id=str(refund.get('id')), raw=refund)


def build_gateway(config) -> Any:
    """Pick a gateway from config; missing credentials yield UnavailableGateway."""
    choice = (config.get('PAYMENT_GATEWAY') or 'stripe').lower()

    if choice == 'stripe':
        if config.get('STRIPE_SECRET_KEY'):
            return StripeGateway(config['STRIPE_SECRET_KEY'])
        logger.warning("STRIPE_SECRET_KEY not set. Payments will be recorded locally only.")
    elif choice == 'mercadopago':
        if config.get('MP_ACCESS_TOKEN'):
            return MercadoPagoGateway(config['MP_ACCESS_TOKEN'], config.get('PAYMENT_RETURN_URL'))
        logger.warning("MP_ACCESS_TOKEN not set. Payments will be recorded locally only.")
    else:
        logger.warning(f"Unknown PAYMENT_GATEWAY '{choice}'. Payments will be recorded locally only.")

    return UnavailableGateway()


def init_gateway(app: Flask) -> None:
    """Build the configured gateway and attach it to the app."""
    app.extensions['payment_gateway'] = build_gateway(app.config)


def get_gateway():
    """Gateway bound to the current app (never None)."""
    gateway = current_app.extensions.get('payment_gateway')
    if gateway is None:
        return UnavailableGateway()
    return gateway


def webhook_secret(gateway) -> Optional[str]:
    """Signing secret for the given gateway's webhooks."""
    if gateway.name == 'stripe':
        return current_app.config.get('STRIPE_WEBHOOK_SECRET')
    if gateway.name == 'mercadopago':
        return current_app.config.get('MP_WEBHOOK_SECRET')
    return None
