"""
Payment service - bridges orders to the configured payment gateway.

The local Payment row is the source of truth for the API. Gateway failures
while creating an intent are logged and the payment is recorded locally
without a transaction id.
"""
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session, joinedload

from marketplace.models import Order, OrderStatus, Payment, PaymentStatus
from marketplace.exceptions import (
    BusinessLogicError, NotFoundError, ForbiddenError, GatewayError
)
from marketplace.services.order_service import seller_owns_order
from marketplace.services.payment_gateways import (
    INTENT_SUCCEEDED, EVENT_PAYMENT_SUCCEEDED
)
from marketplace.utils.number_format import to_money

logger = logging.getLogger(__name__)


def _dump(raw: Optional[Dict[str, Any]]) -> Optional[str]:
    if not raw:
        return None
    return json.dumps(raw, default=str)


def _get_payment(session: Session, payment_id: int) -> Payment:
    payment = (
        session.query(Payment)
        .options(joinedload(Payment.order))
        .filter(Payment.id == payment_id)
        .first()
    )
    if not payment:
        raise NotFoundError('Payment not found')
    return payment


def _complete(payment: Payment, raw: Optional[Dict[str, Any]] = None) -> None:
    """Mark the payment COMPLETED and move a PENDING order to PROCESSING."""
    payment.status = PaymentStatus.COMPLETED
    if raw:
        payment.gateway_response = _dump(raw)
    order = payment.order
    if order is not None and order.status == OrderStatus.PENDING:
        order.status = OrderStatus.PROCESSING


def create_payment_intent(
    session: Session,
    gateway,
    order_id: int,
    amount: Optional[Decimal] = None,
    currency: str = 'usd',
    user_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Start a payment for a PENDING order.

    The amount defaults to the order total. A gateway error does not abort the
    flow: the payment is still written, as PENDING with no transaction id.

    Returns:
        dict with payment, client_secret, payment_intent_id, gateway_available
    """
    query = session.query(Order).filter(Order.id == order_id)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    order = query.first()
    if not order:
        raise NotFoundError('Order not found')

    if order.status != OrderStatus.PENDING:
        raise BusinessLogicError('Order is not pending')

    payment_amount = to_money(amount if amount is not None else order.total_amount or 0)
    if payment_amount <= 0:
        raise BusinessLogicError('Invalid payment amount')

    intent = None
    if gateway.available:
        try:
            intent = gateway.create_intent(
                payment_amount,
                currency,
                {'order_id': str(order.id), 'order_number': order.order_number or ''}
            )
        except GatewayError as e:
            logger.error(f"Gateway intent failed for order {order.order_number}, recording locally: {e}")

    payment = Payment(
        order_id=order.id,
        amount=payment_amount,
        currency=currency.upper(),
        status=PaymentStatus.PENDING,
        payment_method=gateway.name,
        transaction_id=intent.id if intent else None,
        gateway_response=_dump(intent.raw) if intent else None
    )
    session.add(payment)
    session.commit()

    logger.info(
        f"Payment {payment.id} created for order {order.order_number}: "
        f"{payment.amount} {payment.currency} via {gateway.name} (intent={payment.transaction_id})"
    )
    return {
        'payment': payment,
        'client_secret': intent.client_secret if intent else None,
        'payment_intent_id': intent.id if intent else None,
        'gateway_available': intent is not None,
    }


def confirm_payment(
    session: Session,
    gateway,
    payment_id: int,
    transaction_id: Optional[str] = None,
    user_id: Optional[int] = None
) -> Payment:
    """
    Confirm a payment after the client finished the gateway flow.

    With a reachable gateway the intent must report success; a retrieved intent
    in any other state is rejected. When the gateway is unavailable or errors,
    the payment is completed locally.
    """
    payment = _get_payment(session, payment_id)
    if user_id is not None and payment.order.user_id != user_id:
        raise NotFoundError('Payment not found')

    if payment.status == PaymentStatus.COMPLETED:
        return payment
    if payment.status != PaymentStatus.PENDING:
        raise BusinessLogicError(f'Payment cannot be confirmed from status {payment.status.value}')

    intent_id = transaction_id or payment.transaction_id
    if transaction_id:
        payment.transaction_id = transaction_id

    if gateway.available and intent_id:
        try:
            intent = gateway.retrieve_intent(intent_id)
        except GatewayError as e:
            logger.error(f"Gateway verification failed for payment {payment.id}, completing locally: {e}")
        else:
            if intent.status != INTENT_SUCCEEDED:
                session.rollback()
                raise BusinessLogicError(
                    f'Payment has not succeeded at the gateway (status: {intent.status})',
                    payload={'gateway_status': intent.status}
                )
            _complete(payment, intent.raw)
            session.commit()
            logger.info(f"Payment {payment.id} confirmed by {gateway.name}")
            return payment

    _complete(payment)
    session.commit()
    logger.info(f"Payment {payment.id} completed locally")
    return payment


def _find_event_payment(session: Session, gateway, event) -> Optional[Payment]:
    """Match by intent/transaction id, else the latest pending payment of the order."""
    for ref in (event.intent_id, event.transaction_id):
        if ref:
            payment = session.query(Payment).filter(Payment.transaction_id == str(ref)).first()
            if payment:
                return payment

    if event.order_id and str(event.order_id).isdigit():
        return (
            session.query(Payment)
            .filter(
                Payment.order_id == int(event.order_id),
                Payment.payment_method == gateway.name,
                Payment.status == PaymentStatus.PENDING
            )
            .order_by(Payment.id.desc())
            .first()
        )
    return None


def handle_webhook(session: Session, gateway, payload: bytes, signature: str, secret: Optional[str]) -> Dict[str, Any]:
    """
    Verify and apply a gateway webhook.

    Only successful-payment events change state; everything else is
    acknowledged and ignored.
    """
    if not gateway.available:
        raise BusinessLogicError('Payment gateway not configured')
    if not secret:
        raise BusinessLogicError('Webhook secret not configured')

    try:
        event = gateway.construct_event(payload, signature, secret)
    except GatewayError:
        raise BusinessLogicError('Invalid webhook signature')

    logger.info(f"Webhook received from {gateway.name}: type={event.type} intent={event.intent_id}")

    if event.type == EVENT_PAYMENT_SUCCEEDED and (event.order_id or event.intent_id):
        payment = _find_event_payment(session, gateway, event)
        if payment:
            if not payment.transaction_id and event.transaction_id:
                payment.transaction_id = str(event.transaction_id)
            _complete(payment, event.payload)
            session.commit()
            logger.info(f"Payment {payment.id} completed from webhook (order {payment.order_id})")
        else:
            logger.warning(f"No local payment matches webhook intent {event.intent_id}")

    return {'received': True}


def refund_payment(
    session: Session,
    gateway,
    payment_id: int,
    amount: Optional[Decimal] = None,
    user_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Refund all or part of a completed payment.

    Refunds accumulate; the amount defaults to what is left and may not exceed
    it. When a gateway transaction exists the refund goes through the gateway
    and any gateway failure aborts the refund.

    Returns:
        dict with payment and refund_id (None for local-only refunds)
    """
    payment = _get_payment(session, payment_id)
    if user_id is not None and not seller_owns_order(session, payment.order_id, user_id):
        raise ForbiddenError('Only a seller on this order can refund it')

    if payment.status not in (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED):
        raise BusinessLogicError('Payment is not completed')

    remaining = to_money(payment.refundable_amount)
    refund_amount = to_money(amount) if amount is not None else remaining
    if refund_amount <= 0:
        raise BusinessLogicError('Refund amount must be greater than zero')
    if refund_amount > remaining:
        raise BusinessLogicError(
            f'Refund amount {refund_amount} exceeds refundable balance {remaining}',
            payload={'refundable_amount': str(remaining)}
        )

    refund_id = None
    if gateway.available and payment.transaction_id:
        try:
            refund = gateway.create_refund(payment.transaction_id, refund_amount)
        except GatewayError as e:
            logger.error(f"Refund failed for payment {payment.id}: {e}")
            raise BusinessLogicError('Refund failed')
        refund_id = refund.id
        payment.gateway_response = _dump(refund.raw)

    payment.refunded_amount = to_money(payment.refunded_amount or 0) + refund_amount
    payment.refunded_at = datetime.now(timezone.utc)
    if payment.refunded_amount >= to_money(payment.amount):
        payment.status = PaymentStatus.REFUNDED
    else:
        payment.status = PaymentStatus.PARTIALLY_REFUNDED
    session.commit()

    logger.info(f"Refunded {refund_amount} on payment {payment.id} (refund_id={refund_id})")
    return {'payment': payment, 'refund_id': refund_id}
