"""
Catalog service - products, variants, inventory and categories.

Product listings and the category tree are served through the Redis cache
(cache-aside) and invalidated on every catalog write.
"""
import json
import logging
from decimal import Decimal
from typing import Optional, Dict, Any, List

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from marketplace.models import (
    Product, ProductVariant, Inventory, Category, VendorProfile
)
from marketplace.exceptions import (
    NotFoundError, ForbiddenError, ConflictError, ValidationError
)
from marketplace.services.cache_service import get_cache, PRODUCTS_NAMESPACE, CATEGORIES_NAMESPACE
from marketplace.services.review_service import product_ratings
from marketplace.utils.formatters import slugify, join_tags
from marketplace.utils.number_format import parse_amount
from marketplace.utils.request_args import int_value, bool_value
from marketplace.utils.serializers import (
    serialize_product, serialize_category, pagination
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
SORT_FIELDS = {
    'created_at': Product.created_at,
    'price': Product.price,
    'title': Product.title,
}


def _product_query(session: Session):
    return session.query(Product).options(
        joinedload(Product.category),
        selectinload(Product.inventory_records),
        selectinload(Product.variants).joinedload(ProductVariant.inventory),
    )


def _money(data: Dict[str, Any], field: str, required: bool = False) -> Optional[Decimal]:
    try:
        return parse_amount(data.get(field), field, allow_none=not required)
    except ValueError as e:
        raise ValidationError(str(e))


def _unique_slug(session: Session, model, base: str, exclude_id: Optional[int] = None) -> str:
    """Append -2, -3... until the slug is free."""
    base = base or 'item'
    candidate = base
    suffix = 2
    while True:
        query = session.query(model.id).filter(model.slug == candidate)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is None:
            return candidate
        candidate = f'{base}-{suffix}'
        suffix += 1


def _require_vendor(session: Session, user_id: int) -> VendorProfile:
    vendor = session.query(VendorProfile).filter(
        VendorProfile.user_id == user_id,
        VendorProfile.is_active == True  # noqa: E712
    ).first()
    if not vendor:
        raise ForbiddenError('Only registered sellers can manage the catalog')
    return vendor


def invalidate_products() -> None:
    get_cache().invalidate(PRODUCTS_NAMESPACE)


def invalidate_categories() -> None:
    cache = get_cache()
    cache.invalidate(CATEGORIES_NAMESPACE)
    cache.invalidate(PRODUCTS_NAMESPACE)


def with_ratings(session: Session, products: List[Product], detailed: bool = False) -> List[Dict[str, Any]]:
    """Serialize products with average_rating and review_count attached."""
    ratings = product_ratings(session, [p.id for p in products])
    return [serialize_product(p, ratings[p.id], detailed=detailed) for p in products]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(
    session: Session,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    search: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    sort_by: str = 'created_at',
    sort_order: str = 'desc',
    is_active: bool = True
) -> Dict[str, Any]:
    """
    Paginated, filtered product listing.

    Args:
        category: category id or slug
        search: case-insensitive substring over title, description and tags
        sort_by: created_at, price or title

    Returns:
        {'products': [...], 'pagination': {...}} (serialized, cacheable)
    """
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f'sort_by must be one of: {", ".join(SORT_FIELDS)}')
    if sort_order not in ('asc', 'desc'):
        raise ValidationError('sort_order must be asc or desc')
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    page = max(page, 1)

    cache_key = ':'.join(str(part) for part in (
        page, limit, category or '', search or '', min_price or '', max_price or '',
        sort_by, sort_order, int(bool(is_active))
    ))

    def loader():
        query = session.query(Product).filter(Product.is_active == bool(is_active))
        if category:
            query = query.join(Category, Category.id == Product.category_id)
            if str(category).isdigit():
                query = query.filter(or_(Category.id == int(category), Category.slug == str(category)))
            else:
                query = query.filter(Category.slug == category)
        if search:
            pattern = f'%{search}%'
            query = query.filter(or_(
                Product.title.ilike(pattern),
                Product.description.ilike(pattern),
                Product.tags.ilike(pattern),
            ))
        if min_price is not None:
            query = query.filter(Product.price >= min_price)
        if max_price is not None:
            query = query.filter(Product.price <= max_price)

        total = query.count()
        column = SORT_FIELDS[sort_by]
        ordering = column.asc() if sort_order == 'asc' else column.desc()
        products = (
            query.options(
                joinedload(Product.category),
                selectinload(Product.inventory_records),
            )
            .order_by(ordering, Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            'products': with_ratings(session, products),
            'pagination': pagination(page, limit, total),
        }

    ttl = current_app.config.get('CACHE_PRODUCTS_TTL')
    return get_cache().memoize(PRODUCTS_NAMESPACE, cache_key, loader, ttl)


def get_product(session: Session, product_id: int) -> Product:
    product = _product_query(session).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')
    return product


def get_product_by_slug(session: Session, slug: str) -> Product:
    product = _product_query(session).filter(Product.slug == slug).first()
    if not product:
        raise NotFoundError('Product not found')
    return product


def get_featured(session: Session, limit: int = 10) -> List[Product]:
    return (
        _product_query(session)
        .filter(Product.is_featured == True, Product.is_active == True)  # noqa: E712
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def get_related(session: Session, product_id: int, limit: int = 4) -> List[Product]:
    """Other active products from the same category."""
    product = get_product(session, product_id)
    if product.category_id is None:
        return []
    return (
        _product_query(session)
        .filter(
            Product.category_id == product.category_id,
            Product.id != product.id,
            Product.is_active == True  # noqa: E712
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )


def _check_category(session: Session, category_id) -> Optional[int]:
    if category_id in (None, ''):
        return None
    category = session.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError('Category not found')
    return category.id


def _parse_quantity(value, field: str = 'quantity') -> int:
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer')
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer')
    if quantity < 0:
        raise ValidationError(f'{field} cannot be negative')
    return quantity


def _build_variant(data: Dict[str, Any]) -> ProductVariant:
    if not data.get('sku') or not data.get('title'):
        raise ValidationError('Each variant needs a sku and a title')
    attributes = data.get('attributes')
    variant = ProductVariant(
        sku=data['sku'].strip(),
        title=data['title'].strip(),
        price=_money(data, 'price', required=True),
        compare_price=_money(data, 'compare_price'),
        attributes=json.dumps(attributes) if isinstance(attributes, (dict, list)) else attributes,
        is_active=bool_value(data.get('is_active'), True)
    )
    if data.get('quantity') is not None:
        variant.inventory = Inventory(
            quantity=_parse_quantity(data['quantity']),
            low_stock_threshold=_parse_quantity(data.get('low_stock_threshold', 0), 'low_stock_threshold')
        )
    return variant


def create_product(session: Session, user_id: int, data: Dict[str, Any]) -> Product:
    """
    Create a product for the seller's vendor profile.

    Variants and inventory rows are created in the same transaction.

    Raises:
        ForbiddenError: user has no vendor profile
        ValidationError: missing title/sku/price
        ConflictError: duplicate SKU
    """
    vendor = _require_vendor(session, user_id)

    title = (data.get('title') or '').strip()
    sku = (data.get('sku') or '').strip()
    if not title:
        raise ValidationError('title is required')
    if not sku:
        raise ValidationError('sku is required')

    product = Product(
        vendor_id=vendor.id,
        category_id=_check_category(session, data.get('category_id')),
        sku=sku,
        title=title,
        slug=_unique_slug(session, Product, slugify(data.get('slug') or title)),
        description=data.get('description'),
        short_description=data.get('short_description'),
        price=_money(data, 'price', required=True),
        compare_price=_money(data, 'compare_price'),
        currency=(data.get('currency') or 'USD').upper(),
        tags=join_tags(data.get('tags')),
        is_active=bool_value(data.get('is_active'), True),
        is_featured=bool_value(data.get('is_featured'), False)
    )

    if data.get('quantity') is not None:
        product.inventory_records.append(Inventory(
            quantity=_parse_quantity(data['quantity']),
            low_stock_threshold=_parse_quantity(data.get('low_stock_threshold', 0), 'low_stock_threshold')
        ))

    for variant_data in data.get('variants') or []:
        variant = _build_variant(variant_data)
        product.variants.append(variant)
        if variant.inventory is not None:
            product.inventory_records.append(variant.inventory)

    try:
        session.add(product)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError(f'A product or variant with SKU "{sku}" already exists')

    invalidate_products()
    logger.info(f"Product {product.id} '{product.title}' created by vendor {vendor.id}")
    return get_product(session, product.id)


def _owned_product(session: Session, product_id: int, user_id: int) -> Product:
    product = get_product(session, product_id)
    vendor = _require_vendor(session, user_id)
    if product.vendor_id != vendor.id:
        raise ForbiddenError('You can only manage your own products')
    return product


def update_product(session: Session, product_id: int, user_id: int, data: Dict[str, Any]) -> Product:
    """Owner-only partial update of product fields and product-level stock."""
    product = _owned_product(session, product_id, user_id)

    if 'title' in data:
        title = (data['title'] or '').strip()
        if not title:
            raise ValidationError('title cannot be empty')
        product.title = title
    for field in ('description', 'short_description'):
        if field in data:
            setattr(product, field, data[field])
    if 'price' in data:
        product.price = _money(data, 'price', required=True)
    if 'compare_price' in data:
        product.compare_price = _money(data, 'compare_price')
    if 'category_id' in data:
        product.category_id = _check_category(session, data['category_id'])
    if 'tags' in data:
        product.tags = join_tags(data['tags'])
    if 'is_active' in data:
        product.is_active = bool_value(data['is_active'], product.is_active)
    if 'is_featured' in data:
        product.is_featured = bool_value(data['is_featured'], product.is_featured)

    if 'quantity' in data or 'low_stock_threshold' in data:
        inventory = product.inventory
        if inventory is None:
            inventory = Inventory(quantity=0, low_stock_threshold=0)
            product.inventory_records.append(inventory)
        if 'quantity' in data:
            inventory.quantity = _parse_quantity(data['quantity'])
        if 'low_stock_threshold' in data:
            inventory.low_stock_threshold = _parse_quantity(data['low_stock_threshold'], 'low_stock_threshold')

    session.commit()
    invalidate_products()
    return get_product(session, product.id)


def deactivate_product(session: Session, product_id: int, user_id: int) -> Product:
    """Soft delete: the product disappears from listings and checkout."""
    product = _owned_product(session, product_id, user_id)
    product.is_active = False
    session.commit()
    invalidate_products()
    logger.info(f"Product {product.id} deactivated by user {user_id}")
    return product


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def _categories_ttl() -> Optional[int]:
    return current_app.config.get('CACHE_CATEGORIES_TTL')


def list_categories(session: Session) -> List[Dict[str, Any]]:
    """Active categories, flat, by sort order."""
    def loader():
        categories = (
            session.query(Category)
            .filter(Category.is_active == True)  # noqa: E712
            .order_by(Category.sort_order, Category.name)
            .all()
        )
        return [serialize_category(c) for c in categories]
    return get_cache().memoize(CATEGORIES_NAMESPACE, 'list', loader, _categories_ttl())


def get_category_tree(session: Session) -> List[Dict[str, Any]]:
    """Active root categories with their active children nested."""
    def loader():
        roots = (
            session.query(Category)
            .options(selectinload(Category.children).selectinload(Category.children))
            .filter(Category.parent_id.is_(None), Category.is_active == True)  # noqa: E712
            .order_by(Category.sort_order, Category.name)
            .all()
        )
        return [serialize_category(c, include_children=True) for c in roots]
    return get_cache().memoize(CATEGORIES_NAMESPACE, 'tree', loader, _categories_ttl())


def get_category(session: Session, id_or_slug) -> Category:
    query = session.query(Category).options(selectinload(Category.children))
    if str(id_or_slug).isdigit():
        category = query.filter(or_(Category.id == int(id_or_slug), Category.slug == str(id_or_slug))).first()
    else:
        category = query.filter(Category.slug == id_or_slug).first()
    if not category:
        raise NotFoundError('Category not found')
    return category


def create_category(session: Session, user_id: int, data: Dict[str, Any]) -> Category:
    _require_vendor(session, user_id)

    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('name is required')

    parent_id = data.get('parent_id')
    if parent_id is not None:
        parent_id = get_category(session, parent_id).id

    category = Category(
        name=name,
        slug=_unique_slug(session, Category, slugify(data.get('slug') or name)),
        description=data.get('description'),
        parent_id=parent_id,
        sort_order=int_value(data.get('sort_order'), 'sort_order', default=0),
        is_active=bool_value(data.get('is_active'), True)
    )
    session.add(category)
    session.commit()
    invalidate_categories()
    logger.info(f"Category {category.id} '{category.slug}' created by user {user_id}")
    return category


def update_category(session: Session, id_or_slug, user_id: int, data: Dict[str, Any]) -> Category:
    _require_vendor(session, user_id)
    category = get_category(session, id_or_slug)

    if 'name' in data:
        name = (data['name'] or '').strip()
        if not name:
            raise ValidationError('name cannot be empty')
        category.name = name
    if data.get('slug'):
        category.slug = _unique_slug(session, Category, slugify(data['slug']), exclude_id=category.id)
    if 'description' in data:
        category.description = data['description']
    if 'parent_id' in data:
        parent_id = data['parent_id']
        if parent_id is not None:
            parent_id = get_category(session, parent_id).id
            if parent_id == category.id:
                raise ValidationError('A category cannot be its own parent')
        category.parent_id = parent_id
    if 'sort_order' in data:
        category.sort_order = int_value(data['sort_order'], 'sort_order', default=0)
    if 'is_active' in data:
        category.is_active = bool_value(data['is_active'], category.is_active)

    session.commit()
    invalidate_categories()
    return category


def deactivate_category(session: Session, id_or_slug, user_id: int) -> Category:
    _require_vendor(session, user_id)
    category = get_category(session, id_or_slug)
    category.is_active = False
    session.commit()
    invalidate_categories()
    logger.info(f"Category {category.id} deactivated by user {user_id}")
    return category
