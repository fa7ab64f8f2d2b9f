"""
Coupon evaluation.

A coupon that fails any check is ignored rather than rejected: the order
proceeds without a discount and callers learn about it through the
evaluation's `applied` flag and `reason`.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from marketplace.models import Coupon, CouponType
from marketplace.utils.number_format import to_money

ZERO = Decimal('0.00')


@dataclass(frozen=True)
class CouponEvaluation:
    """Outcome of checking a coupon against a subtotal."""
    applied: bool
    discount: Decimal
    reason: Optional[str] = None
    coupon: Optional[Coupon] = None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (SQLite drops tzinfo) are stored in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Percentage coupons take value% of the subtotal, capped by maximum_discount; fixed coupons take value."""
    if coupon.type == CouponType.PERCENTAGE:
        discount = to_money(subtotal * coupon.value / Decimal('100'))
        if coupon.maximum_discount is not None:
            discount = min(discount, to_money(coupon.maximum_discount))
        return discount
    return to_money(coupon.value)


def evaluate_coupon(coupon: Optional[Coupon], subtotal: Decimal, now: Optional[datetime] = None) -> CouponEvaluation:
    """Check activation, window, usage cap and minimum amount, then compute the discount."""
    if coupon is None:
        return CouponEvaluation(False, ZERO, 'not_found')

    now = _as_utc(now) or datetime.now(timezone.utc)
    starts_at = _as_utc(coupon.starts_at)
    expires_at = _as_utc(coupon.expires_at)

    if not coupon.is_active:
        return CouponEvaluation(False, ZERO, 'inactive', coupon)
    if starts_at is not None and now < starts_at:
        return CouponEvaluation(False, ZERO, 'not_started', coupon)
    if expires_at is not None and now > expires_at:
        return CouponEvaluation(False, ZERO, 'expired', coupon)
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return CouponEvaluation(False, ZERO, 'usage_limit_reached', coupon)
    if coupon.minimum_amount is not None and subtotal < coupon.minimum_amount:
        return CouponEvaluation(False, ZERO, 'below_minimum_amount', coupon)

    discount = compute_discount(coupon, subtotal)
    if discount <= 0:
        return CouponEvaluation(False, ZERO, 'no_discount', coupon)
    return CouponEvaluation(True, discount, None, coupon)


def find_coupon(session: Session, code: Optional[str]) -> Optional[Coupon]:
    if not code:
        return None
    return session.query(Coupon).filter(Coupon.code == code.strip()).first()


def preview_coupon(session: Session, code: str, subtotal: Decimal) -> CouponEvaluation:
    """Evaluate a code against a subtotal without redeeming it."""
    return evaluate_coupon(find_coupon(session, code), subtotal)


def redeem_coupon(session: Session, coupon: Coupon) -> None:
    """
    Increment the coupon's usage counter.

    The usage cap is only checked by evaluate_coupon beforehand; two concurrent
    checkouts can both pass the check and push used_count past usage_limit.
    """
    session.query(Coupon).filter(Coupon.id == coupon.id).update(
        {Coupon.used_count: Coupon.used_count + 1},
        synchronize_session=False
    )
