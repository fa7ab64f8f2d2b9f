"""Search service - substring search over active products."""
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from marketplace.models import Product, Category
from marketplace.exceptions import ValidationError
from marketplace.services.catalog_service import SORT_FIELDS, MAX_PAGE_SIZE, with_ratings
from marketplace.utils.serializers import pagination


def _text_filter(term: str, *columns):
    pattern = f'%{term}%'
    return or_(*(column.ilike(pattern) for column in columns))


def search(
    session: Session,
    query: str,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    sort_by: str = 'created_at',
    sort_order: str = 'desc'
) -> Dict[str, Any]:
    """Case-insensitive LIKE over title, description, short description and tags."""
    term = (query or '').strip()
    if not term:
        raise ValidationError('Search query is required')
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f'sort_by must be one of: {", ".join(SORT_FIELDS)}')
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    page = max(page, 1)

    q = session.query(Product).filter(
        Product.is_active == True,  # noqa: E712
        _text_filter(term, Product.title, Product.description, Product.short_description, Product.tags)
    )
    if category:
        q = q.join(Category, Category.id == Product.category_id)
        if str(category).isdigit():
            q = q.filter(or_(Category.id == int(category), Category.slug == str(category)))
        else:
            q = q.filter(Category.slug == category)
    if min_price is not None:
        q = q.filter(Product.price >= min_price)
    if max_price is not None:
        q = q.filter(Product.price <= max_price)

    total = q.count()
    column = SORT_FIELDS[sort_by]
    products = (
        q.options(joinedload(Product.category), selectinload(Product.inventory_records))
        .order_by(column.asc() if sort_order == 'asc' else column.desc(), Product.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        'query': term,
        'products': with_ratings(session, products),
        'pagination': pagination(page, limit, total),
    }


def autocomplete(session: Session, query: str, limit: int = 5) -> List[Dict[str, Any]]:
    term = (query or '').strip()
    if not term:
        return []
    rows = (
        session.query(Product.id, Product.title, Product.slug)
        .filter(
            Product.is_active == True,  # noqa: E712
            _text_filter(term, Product.title, Product.short_description)
        )
        .order_by(Product.title)
        .limit(limit)
        .all()
    )
    return [{'id': row.id, 'title': row.title, 'slug': row.slug} for row in rows]
