"""
Integration tests for gateway webhooks.
"""

import hashlib
import hmac
import json
import pytest
from unittest.mock import patch

from marketplace.models import OrderStatus, PaymentStatus
from marketplace.services import payment_service
from marketplace.services.payment_gateways import (
    GatewayEvent, MercadoPagoGateway, EVENT_PAYMENT_SUCCEEDED
)
from marketplace.exceptions import GatewayError


@pytest.fixture
def stripe_gateway(app, fake_gateway, monkeypatch):
    monkeypatch.setitem(app.extensions, 'payment_gateway', fake_gateway)
    monkeypatch.setitem(app.config, 'STRIPE_WEBHOOK_SECRET', 'whsec_test')
    return fake_gateway


@pytest.fixture
def mp_gateway(app, monkeypatch):
    with patch('marketplace.services.payment_gateways.mercadopago.SDK'):
        gateway = MercadoPagoGateway('TEST-1')
    monkeypatch.setitem(app.extensions, 'payment_gateway', gateway)
    monkeypatch.setitem(app.config, 'MP_WEBHOOK_SECRET', 'mp-secret')
    return gateway


class TestStripeWebhook:

    def test_not_configured(self, client, session):
        response = client.post('/api/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 'x'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Payment gateway not configured'

    def test_missing_secret(self, client, session, app, fake_gateway, monkeypatch):
        monkeypatch.setitem(app.extensions, 'payment_gateway', fake_gateway)
        response = client.post('/api/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 'x'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Webhook secret not configured'

    def test_bad_signature(self, client, session, stripe_gateway):
        stripe_gateway.construct_event.side_effect = GatewayError('bad')
        response = client.post('/api/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 'x'})
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid webhook signature'

    def test_succeeded_event(self, client, session, buyer, order, stripe_gateway):
        payment = payment_service.create_payment_intent(session, stripe_gateway, order.id, user_id=buyer.id)['payment']
        stripe_gateway.construct_event.return_value = GatewayEvent(
            type=EVENT_PAYMENT_SUCCEEDED, intent_id='pi_test_123', order_id=str(order.id),
            transaction_id='pi_test_123'
        )

        response = client.post('/api/webhooks/stripe', data=b'{"id": "evt_1"}', headers={'Stripe-Signature': 't=1,v1=x'})

        assert response.status_code == 200
        assert response.get_json() == {'received': True}
        payload, signature, secret = stripe_gateway.construct_event.call_args[0]
        assert payload == b'{"id": "evt_1"}'
        assert signature == 't=1,v1=x'
        assert secret == 'whsec_test'
        session.refresh(payment)
        session.refresh(order)
        assert payment.status == PaymentStatus.COMPLETED
        assert order.status == OrderStatus.PROCESSING

    def test_mercadopago_route_rejects_stripe_gateway(self, client, session, stripe_gateway):
        response = client.post('/api/webhooks/mercadopago', data=b'{}', headers={'X-Signature': 'x'})
        assert response.status_code == 400
        stripe_gateway.construct_event.assert_not_called()


class TestMercadoPagoWebhook:

    def test_approved_payment_completes_order(self, client, session, buyer, order, mp_gateway):
        mp_gateway.sdk.preference.return_value.create.return_value = {
            'status': 201, 'response': {'id': 'pref-1', 'init_point': 'https://mp.test/pref-1'}
        }
        payment = payment_service.create_payment_intent(session, mp_gateway, order.id, user_id=buyer.id)['payment']
        assert payment.transaction_id == 'pref-1'

        mp_gateway.sdk.payment.return_value.get.return_value = {
            'status': 200,
            'response': {
                'id': 777, 'status': 'approved', 'preference_id': 'pref-1',
                'external_reference': str(order.id),
            },
        }
        body = json.dumps({'type': 'payment', 'data': {'id': '777'}}).encode('utf-8')
        signature = hmac.new(b'mp-secret', body, hashlib.sha256).hexdigest()

        response = client.post('/api/webhooks/mercadopago', data=body, headers={'X-Signature': signature})

        assert response.status_code == 200
        session.refresh(payment)
        session.refresh(order)
        assert payment.status == PaymentStatus.COMPLETED
        assert order.status == OrderStatus.PROCESSING

    def test_unsigned_notification(self, client, session, mp_gateway):
        response = client.post('/api/webhooks/mercadopago', data=b'{"type": "payment"}')
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid webhook signature'
