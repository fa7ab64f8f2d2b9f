"""
User service - profile, address book and wishlist.
"""
import logging
from typing import Dict, Any, List

from sqlalchemy.orm import Session, joinedload

from marketplace.models import User, Address, AddressType, Product, WishlistItem
from marketplace.exceptions import (
    NotFoundError, ForbiddenError, ConflictError, ValidationError, AddressNotFoundError
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('first_name', 'last_name', 'phone')
ADDRESS_FIELDS = (
    'first_name', 'last_name', 'company', 'address1', 'address2',
    'city', 'state', 'postal_code', 'country', 'phone',
)
REQUIRED_ADDRESS_FIELDS = ('first_name', 'last_name', 'address1', 'city', 'postal_code', 'country')


def get_profile(session: Session, user_id: int) -> User:
    user = session.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError('User not found')
    return user


def update_profile(session: Session, user_id: int, data: Dict[str, Any]) -> User:
    user = get_profile(session, user_id)
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    session.commit()
    return user


# Addresses

def _parse_address_type(value) -> AddressType:
    try:
        return AddressType(str(value).lower())
    except ValueError:
        raise ValidationError('Address type must be billing or shipping')


def _clear_default(session: Session, user_id: int, address_type: AddressType, keep_id=None) -> None:
    query = session.query(Address).filter(
        Address.user_id == user_id,
        Address.type == address_type,
        Address.is_default == True  # noqa: E712
    )
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    for address in query.all():
        address.is_default = False


def list_addresses(session: Session, user_id: int) -> List[Address]:
    """Default addresses first, then newest."""
    return (
        session.query(Address)
        .filter(Address.user_id == user_id)
        .order_by(Address.is_default.desc(), Address.id.desc())
        .all()
    )


def get_user_address(session: Session, user_id: int, address_id: int) -> Address:
    """Address owned by the user, used by checkout."""
    address = session.query(Address).filter(
        Address.id == address_id,
        Address.user_id == user_id
    ).first()
    if not address:
        raise AddressNotFoundError()
    return address


def create_address(session: Session, user_id: int, data: Dict[str, Any]) -> Address:
    missing = [field for field in REQUIRED_ADDRESS_FIELDS if not data.get(field)]
    if missing:
        raise ValidationError(f'Missing required fields: {", ".join(missing)}', payload={'fields': missing})

    address_type = _parse_address_type(data.get('type'))
    address = Address(user_id=user_id, type=address_type, is_default=bool(data.get('is_default', False)))
    for field in ADDRESS_FIELDS:
        if field in data:
            setattr(address, field, data[field])
    address.country = str(address.country).upper()[:2]

    if address.is_default:
        _clear_default(session, user_id, address_type)
    session.add(address)
    session.commit()
    return address


def _owned_address(session: Session, user_id: int, address_id: int) -> Address:
    """NotFound when absent, Forbidden when the address belongs to someone else."""
    address = session.query(Address).filter(Address.id == address_id).first()
    if not address:
        raise AddressNotFoundError()
    if address.user_id != user_id:
        raise ForbiddenError('You can only manage your own addresses')
    return address


def update_address(session: Session, user_id: int, address_id: int, data: Dict[str, Any]) -> Address:
    address = _owned_address(session, user_id, address_id)

    if 'type' in data:
        address.type = _parse_address_type(data['type'])
    for field in ADDRESS_FIELDS:
        if field in data:
            if field in REQUIRED_ADDRESS_FIELDS and not data[field]:
                raise ValidationError(f'{field} cannot be empty')
            setattr(address, field, data[field])
    if 'country' in data:
        address.country = str(address.country).upper()[:2]
    if 'is_default' in data:
        address.is_default = bool(data['is_default'])
        if address.is_default:
            _clear_default(session, user_id, address.type, keep_id=address.id)

    session.commit()
    return address


def delete_address(session: Session, user_id: int, address_id: int) -> None:
    address = _owned_address(session, user_id, address_id)
    session.delete(address)
    session.commit()


# Wishlist

def get_wishlist(session: Session, user_id: int) -> List[WishlistItem]:
    return (
        session.query(WishlistItem)
        .options(joinedload(WishlistItem.product).joinedload(Product.category))
        .filter(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        .all()
    )


def add_to_wishlist(session: Session, user_id: int, product_id: int) -> WishlistItem:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError('Product not found')

    existing = session.query(WishlistItem).filter(
        WishlistItem.user_id == user_id,
        WishlistItem.product_id == product_id
    ).first()
    if existing:
        raise ConflictError('Product already in wishlist')

    item = WishlistItem(user_id=user_id, product_id=product_id)
    session.add(item)
    session.commit()
    return item


def remove_from_wishlist(session: Session, user_id: int, product_id: int) -> None:
    item = session.query(WishlistItem).filter(
        WishlistItem.user_id == user_id,
        WishlistItem.product_id == product_id
    ).first()
    if not item:
        raise NotFoundError('Product not in wishlist')
    session.delete(item)
    session.commit()
