"""
End-to-end checkout through the HTTP API: cart, coupon preview, order,
payment intent, confirmation and seller refund.
"""

import pytest

from marketplace.models import OrderStatus, PaymentStatus
from marketplace.services.payment_gateways import PaymentIntent


@pytest.fixture
def gateway(app, fake_gateway, monkeypatch):
    monkeypatch.setitem(app.extensions, 'payment_gateway', fake_gateway)
    return fake_gateway


class TestAuthentication:

    @pytest.mark.parametrize('method,url', [
        ('get', '/api/cart'),
        ('post', '/api/orders'),
        ('get', '/api/orders'),
        ('post', '/api/payments/intent'),
        ('post', '/api/coupons/validate'),
        ('get', '/api/users/me'),
    ])
    def test_requires_bearer_token(self, client, method, url):
        response = getattr(client, method)(url)
        assert response.status_code == 401
        assert response.get_json()['code'] == 'UNAUTHORIZED'

    def test_invalid_token(self, client):
        response = client.get('/api/cart', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_inactive_user_is_rejected(self, client, session, buyer, buyer_headers):
        buyer.is_active = False
        session.commit()
        assert client.get('/api/cart', headers=buyer_headers).status_code == 401


class TestCheckoutFlow:

    def test_full_flow(self, client, session, gateway, product, product_b, billing_address,
                       shipping_address, save20, buyer_headers, seller_headers):
        client.post('/api/cart/items', json={'product_id': product.id, 'quantity': 2}, headers=buyer_headers)
        response = client.post('/api/cart/items', json={'product_id': product_b.id}, headers=buyer_headers)
        assert response.status_code == 201

        cart = client.get('/api/cart', headers=buyer_headers).get_json()
        assert cart['subtotal'] == '55.00'
        assert cart['item_count'] == 3

        preview = client.post(
            '/api/coupons/validate', json={'code': 'SAVE20', 'subtotal': cart['subtotal']}, headers=buyer_headers
        ).get_json()
        assert preview == {'code': 'SAVE20', 'valid': True, 'discount': '20.00', 'reason': None}

        response = client.post('/api/orders', json={
            'billing_address_id': billing_address.id,
            'shipping_address_id': shipping_address.id,
            'coupon_code': 'SAVE20',
        }, headers=buyer_headers)
        assert response.status_code == 201
        order = response.get_json()
        assert order['status'] == OrderStatus.PENDING.value
        assert order['subtotal'] == '55.00'
        assert order['tax_amount'] == '4.40'
        assert order['discount_amount'] == '20.00'
        assert order['total_amount'] == '39.40'
        assert order['coupon_applied'] is True
        assert len(order['items']) == 2
        assert client.get('/api/cart/count', headers=buyer_headers).get_json() == {'count': 0}

        response = client.post('/api/payments/intent', json={'order_id': order['id']}, headers=buyer_headers)
        assert response.status_code == 201
        intent = response.get_json()
        assert intent['client_secret'] == 'pi_test_123_secret'
        assert intent['payment']['amount'] == '39.40'
        assert intent['payment']['status'] == PaymentStatus.PENDING.value

        payment_id = intent['payment']['id']
        response = client.post(f'/api/payments/{payment_id}/confirm', headers=buyer_headers)
        assert response.status_code == 200
        assert response.get_json()['payment']['status'] == PaymentStatus.COMPLETED.value

        detail = client.get(f"/api/orders/{order['id']}", headers=buyer_headers).get_json()
        assert detail['status'] == OrderStatus.PROCESSING.value
        assert detail['payments'][0]['status'] == PaymentStatus.COMPLETED.value

        seller_view = client.get('/api/seller/orders', headers=seller_headers).get_json()
        assert [o['id'] for o in seller_view['orders']] == [order['id']]

        response = client.post(f'/api/payments/{payment_id}/refund', json={'amount': '9.40'}, headers=seller_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['refund_id'] == 're_test_1'
        assert body['payment']['status'] == PaymentStatus.PARTIALLY_REFUNDED.value
        assert body['payment']['refunded_amount'] == '9.40'

    def test_intent_without_gateway_is_recorded(self, client, order, buyer_headers):
        response = client.post('/api/payments/intent', json={'order_id': order.id}, headers=buyer_headers)
        assert response.status_code == 201
        body = response.get_json()
        assert body['gateway_available'] is False
        assert body['client_secret'] is None
        assert body['payment']['transaction_id'] is None

    def test_confirm_rejected_when_intent_not_succeeded(self, client, gateway, order, buyer_headers):
        gateway.retrieve_intent.return_value = PaymentIntent(id='pi_test_123', status='processing')

        payment_id = client.post(
            '/api/payments/intent', json={'order_id': order.id}, headers=buyer_headers
        ).get_json()['payment']['id']
        response = client.post(f'/api/payments/{payment_id}/confirm', headers=buyer_headers)

        assert response.status_code == 400
        assert response.get_json()['gateway_status'] == 'processing'


class TestCheckoutErrors:

    def test_empty_cart(self, client, billing_address, shipping_address, buyer_headers):
        response = client.post('/api/orders', json={
            'billing_address_id': billing_address.id,
            'shipping_address_id': shipping_address.id,
        }, headers=buyer_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'EMPTY_CART'

    def test_missing_address_ids(self, client, cart_55, buyer_headers):
        response = client.post('/api/orders', json={}, headers=buyer_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'VALIDATION_ERROR'

    def test_foreign_address(self, client, cart_55, billing_address, foreign_address, buyer_headers):
        response = client.post('/api/orders', json={
            'billing_address_id': billing_address.id,
            'shipping_address_id': foreign_address.id,
        }, headers=buyer_headers)
        assert response.status_code == 404
        assert response.get_json()['code'] == 'ADDRESS_NOT_FOUND'

    def test_invalid_coupon_still_creates_order(self, client, cart_55, billing_address, shipping_address,
                                                expired_coupon, buyer_headers):
        response = client.post('/api/orders', json={
            'billing_address_id': billing_address.id,
            'shipping_address_id': shipping_address.id,
            'coupon_code': expired_coupon.code,
        }, headers=buyer_headers)
        assert response.status_code == 201
        body = response.get_json()
        assert body['coupon_applied'] is False
        assert body['total_amount'] == '59.40'

    def test_other_user_cannot_see_order(self, client, order, other_headers):
        assert client.get(f'/api/orders/{order.id}', headers=other_headers).status_code == 404


class TestStatusUpdates:

    def test_seller_ships_order(self, client, order, seller_headers):
        response = client.patch(f'/api/orders/{order.id}/status', json={'status': 'shipped'}, headers=seller_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'SHIPPED'
        assert body['shipped_at'] is not None

    def test_unknown_status(self, client, order, seller_headers):
        response = client.patch(f'/api/orders/{order.id}/status', json={'status': 'teleported'}, headers=seller_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_STATUS'

    def test_backwards_transition(self, client, order, seller_headers):
        client.patch(f'/api/orders/{order.id}/status', json={'status': 'DELIVERED'}, headers=seller_headers)
        response = client.patch(f'/api/orders/{order.id}/status', json={'status': 'PENDING'}, headers=seller_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_TRANSITION'

    def test_unrelated_user_forbidden(self, client, order, other_headers):
        response = client.patch(f'/api/orders/{order.id}/status', json={'status': 'SHIPPED'}, headers=other_headers)
        assert response.status_code == 403

    def test_cancel_then_cancel_again(self, client, order, buyer_headers):
        assert client.post(f'/api/orders/{order.id}/cancel', headers=buyer_headers).get_json()['status'] == 'CANCELLED'
        response = client.post(f'/api/orders/{order.id}/cancel', headers=buyer_headers)
        assert response.status_code == 400
        assert response.get_json()['code'] == 'ALREADY_CANCELLED'
