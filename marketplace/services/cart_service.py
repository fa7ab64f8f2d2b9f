"""Cart service - persistent per-user cart lines."""

from decimal import Decimal
from typing import Optional, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from marketplace.models import CartItem, Product, ProductVariant, Inventory
from marketplace.exceptions import (
    NotFoundError, ValidationError, InsufficientInventoryError
)
from marketplace.utils.number_format import to_money


def _cart_query(session: Session, user_id: int):
    return (
        session.query(CartItem)
        .options(
            joinedload(CartItem.product).joinedload(Product.inventory_records),
            joinedload(CartItem.variant).joinedload(ProductVariant.inventory),
        )
        .filter(CartItem.user_id == user_id)
    )


def calculate_cart_totals(items) -> Dict[str, Any]:
    """Subtotal is the sum of effective price x quantity; item_count the sum of quantities."""
    subtotal = Decimal('0')
    item_count = 0
    for item in items:
        subtotal += item.unit_price * item.quantity
        item_count += item.quantity
    return {'subtotal': to_money(subtotal), 'item_count': item_count}


def get_cart(session: Session, user_id: int) -> Dict[str, Any]:
    """
    Load the user's cart lines with product, variant and inventory joined in.

    No pagination; a user's cart is assumed small. An empty cart has subtotal 0.
    """
    items = _cart_query(session, user_id).order_by(CartItem.created_at.desc(), CartItem.id.desc()).all()
    totals = calculate_cart_totals(items)
    return {
        'items': items,
        'subtotal': totals['subtotal'],
        'item_count': totals['item_count'],
    }


def _resolve_inventory(product: Product, variant: Optional[ProductVariant]) -> Optional[Inventory]:
    if variant is not None:
        return variant.inventory
    return product.inventory


def _check_inventory(inventory: Optional[Inventory], title: str, quantity: int) -> None:
    """A missing inventory row means the item is not stock-tracked."""
    if inventory is not None and inventory.quantity < quantity:
        raise InsufficientInventoryError(title, quantity, inventory.quantity)


def add_to_cart(
    session: Session,
    user_id: int,
    product_id: int,
    quantity: int,
    variant_id: Optional[int] = None
) -> CartItem:
    """
    Add a product (or variant) to the cart, merging with an existing line.

    Inventory is read before the cart line is written; there is no reservation,
    so concurrent requests may oversell.
    """
    if quantity is None or quantity < 1:
        raise ValidationError('Quantity must be at least 1')

    product = session.query(Product).filter(
        Product.id == product_id,
        Product.is_active == True  # noqa: E712
    ).first()
    if not product:
        raise NotFoundError('Product not found or inactive')

    variant = None
    if variant_id is not None:
        variant = session.query(ProductVariant).filter(
            ProductVariant.id == variant_id,
            ProductVariant.product_id == product.id,
            ProductVariant.is_active == True  # noqa: E712
        ).first()
        if not variant:
            raise NotFoundError('Product variant not found or inactive')

    title = variant.title if variant is not None else product.title
    inventory = _resolve_inventory(product, variant)
    _check_inventory(inventory, title, quantity)

    variant_filter = CartItem.variant_id.is_(None) if variant_id is None else CartItem.variant_id == variant_id
    existing = session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.product_id == product.id,
        variant_filter
    ).first()

    if existing:
        new_quantity = existing.quantity + quantity
        _check_inventory(inventory, title, new_quantity)
        existing.quantity = new_quantity
        session.commit()
        return existing

    item = CartItem(
        user_id=user_id,
        product_id=product.id,
        variant_id=variant_id,
        quantity=quantity
    )
    session.add(item)
    session.commit()
    return item


def _get_user_item(session: Session, user_id: int, item_id: int) -> CartItem:
    item = session.query(CartItem).filter(
        CartItem.id == item_id,
        CartItem.user_id == user_id
    ).first()
    if not item:
        raise NotFoundError('Cart item not found')
    return item


def update_cart_item(session: Session, user_id: int, item_id: int, quantity: int) -> Optional[CartItem]:
    """Set a line's quantity. A quantity of zero or less removes the line (returns None)."""
    if quantity is None:
        raise ValidationError('Quantity is required')
    if quantity <= 0:
        remove_from_cart(session, user_id, item_id)
        return None

    item = _get_user_item(session, user_id, item_id)
    title = item.variant.title if item.variant is not None else item.product.title
    _check_inventory(item.inventory, title, quantity)

    item.quantity = quantity
    session.commit()
    return item


def remove_from_cart(session: Session, user_id: int, item_id: int) -> None:
    item = _get_user_item(session, user_id, item_id)
    session.delete(item)
    session.commit()


def clear_cart(session: Session, user_id: int, commit: bool = True) -> int:
    """Delete every cart line for the user. Returns the number of lines removed."""
    deleted = session.query(CartItem).filter(CartItem.user_id == user_id).delete(synchronize_session=False)
    if commit:
        session.commit()
    return deleted


def get_cart_item_count(session: Session, user_id: int) -> int:
    total = session.query(func.sum(CartItem.quantity)).filter(CartItem.user_id == user_id).scalar()
    return int(total or 0)
