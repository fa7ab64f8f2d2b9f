"""Review service - product reviews and rating aggregates."""
import logging
from typing import Dict, Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from marketplace.models import Review, Product, VendorProfile
from marketplace.services.cache_service import get_cache, PRODUCTS_NAMESPACE
from marketplace.exceptions import (
    NotFoundError, ForbiddenError, ConflictError, InvalidRatingError
)

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _refresh_listings() -> None:
    """Cached product listings embed rating aggregates."""
    get_cache().invalidate(PRODUCTS_NAMESPACE)


def _validate_rating(rating) -> int:
    if isinstance(rating, bool):
        raise InvalidRatingError()
    try:
        value = int(str(rating).strip())
    except ValueError:
        raise InvalidRatingError()
    if value < MIN_RATING or value > MAX_RATING:
        raise InvalidRatingError()
    return value


def product_ratings(session: Session, product_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """
    Average rating (one decimal) and count of approved reviews per product.

    Products without reviews map to average 0 and count 0.
    """
    ids = list(product_ids)
    ratings = {pid: {'average_rating': 0.0, 'review_count': 0} for pid in ids}
    if not ids:
        return ratings

    rows = (
        session.query(Review.product_id, func.avg(Review.rating), func.count(Review.id))
        .filter(Review.product_id.in_(ids), Review.is_approved == True)  # noqa: E712
        .group_by(Review.product_id)
        .all()
    )
    for product_id, average, count in rows:
        ratings[product_id] = {
            'average_rating': round(float(average or 0), 1),
            'review_count': int(count),
        }
    return ratings


def create_review(session: Session, user_id: int, product_id: int, rating, title: Optional[str] = None,
                  comment: Optional[str] = None) -> Review:
    """One review per user and product; new reviews are approved but not verified."""
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')

    existing = session.query(Review).filter(
        Review.user_id == user_id,
        Review.product_id == product_id
    ).first()
    if existing:
        raise ConflictError('You have already reviewed this product', payload={'review_id': existing.id})

    review = Review(
        user_id=user_id,
        product_id=product_id,
        rating=_validate_rating(rating),
        title=title,
        comment=comment,
        is_verified=False,
        is_approved=True
    )
    session.add(review)
    session.commit()
    _refresh_listings()
    logger.info(f"Review {review.id} created by user {user_id} for product {product_id}")
    return review


def list_reviews(session: Session, product_id: int, page: int = 1, limit: int = 10,
                 approved_only: bool = True) -> Dict[str, Any]:
    query = session.query(Review).filter(Review.product_id == product_id)
    if approved_only:
        query = query.filter(Review.is_approved == True)  # noqa: E712

    total = query.count()
    reviews = (
        query.options(joinedload(Review.user))
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    average = query.with_entities(func.avg(Review.rating)).scalar()
    return {
        'reviews': reviews,
        'average_rating': round(float(average or 0), 1),
        'page': page,
        'limit': limit,
        'total': total,
    }


def get_review(session: Session, review_id: int) -> Review:
    review = (
        session.query(Review)
        .options(joinedload(Review.user), joinedload(Review.product))
        .filter(Review.id == review_id)
        .first()
    )
    if not review:
        raise NotFoundError('Review not found')
    return review


def update_review(session: Session, review_id: int, user_id: int, data: Dict[str, Any]) -> Review:
    """Authors may change rating, title and comment of their own review."""
    review = get_review(session, review_id)
    if review.user_id != user_id:
        raise ForbiddenError('You can only update your own reviews')

    if 'rating' in data and data['rating'] is not None:
        review.rating = _validate_rating(data['rating'])
    if 'title' in data:
        review.title = data['title']
    if 'comment' in data:
        review.comment = data['comment']
    session.commit()
    _refresh_listings()
    return review


def delete_review(session: Session, review_id: int, user_id: int) -> None:
    review = get_review(session, review_id)
    if review.user_id != user_id:
        raise ForbiddenError('You can only delete your own reviews')
    session.delete(review)
    session.commit()
    _refresh_listings()
    logger.info(f"Review {review_id} deleted by user {user_id}")


def _moderate(session: Session, review_id: int, user_id: int, approved: bool) -> Review:
    """Moderation is done by the seller of the reviewed product."""
    review = get_review(session, review_id)
    seller = (
        session.query(VendorProfile.user_id)
        .join(Product, Product.vendor_id == VendorProfile.id)
        .filter(Product.id == review.product_id)
        .scalar()
    )
    if seller != user_id:
        raise ForbiddenError('Only the seller of this product can moderate its reviews')
    review.is_approved = approved
    session.commit()
    _refresh_listings()
    logger.info(f"Review {review_id} {'approved' if approved else 'rejected'} by user {user_id}")
    return review


def approve_review(session: Session, review_id: int, user_id: int) -> Review:
    return _moderate(session, review_id, user_id, True)


def reject_review(session: Session, review_id: int, user_id: int) -> Review:
    return _moderate(session, review_id, user_id, False)
