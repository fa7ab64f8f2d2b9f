"""JSON serialization helpers for API responses."""
from datetime import datetime, date
from typing import Any, Dict, Optional

from marketplace.utils.number_format import money_str


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _enum_value(value):
    return getattr(value, 'value', value)


def pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    """Pagination block shared by every list endpoint."""
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': (total + limit - 1) // limit if limit else 0,
    }


def serialize_user(user) -> Dict[str, Any]:
    return {
        'id': user.id,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'phone': user.phone,
        'is_active': user.is_active,
        'is_seller': user.is_seller,
        'created_at': _iso(user.created_at),
        'updated_at': _iso(user.updated_at),
    }


def serialize_address(address) -> Optional[Dict[str, Any]]:
    if address is None:
        return None
    return {
        'id': address.id,
        'type': _enum_value(address.type),
        'first_name': address.first_name,
        'last_name': address.last_name,
        'company': address.company,
        'address1': address.address1,
        'address2': address.address2,
        'city': address.city,
        'state': address.state,
        'postal_code': address.postal_code,
        'country': address.country,
        'phone': address.phone,
        'is_default': address.is_default,
    }


def serialize_category(category, include_children: bool = False) -> Dict[str, Any]:
    data = {
        'id': category.id,
        'name': category.name,
        'slug': category.slug,
        'description': category.description,
        'parent_id': category.parent_id,
        'sort_order': category.sort_order,
        'is_active': category.is_active,
    }
    if include_children:
        data['children'] = [
            serialize_category(child, include_children=True)
            for child in category.children if child.is_active
        ]
    return data


def serialize_inventory(inventory) -> Optional[Dict[str, Any]]:
    if inventory is None:
        return None
    return {
        'quantity': inventory.quantity,
        'low_stock_threshold': inventory.low_stock_threshold,
        'is_low': inventory.is_low,
    }


def serialize_variant(variant) -> Optional[Dict[str, Any]]:
    if variant is None:
        return None
    return {
        'id': variant.id,
        'product_id': variant.product_id,
        'sku': variant.sku,
        'title': variant.title,
        'price': money_str(variant.price),
        'compare_price': money_str(variant.compare_price),
        'attributes': variant.attributes,
        'is_active': variant.is_active,
        'inventory': serialize_inventory(variant.inventory),
    }


def serialize_product(product, rating: Optional[Dict[str, Any]] = None,
                      detailed: bool = False) -> Dict[str, Any]:
    data = {
        'id': product.id,
        'sku': product.sku,
        'title': product.title,
        'slug': product.slug,
        'short_description': product.short_description,
        'price': money_str(product.price),
        'compare_price': money_str(product.compare_price),
        'currency': product.currency,
        'tags': product.tag_list,
        'is_active': product.is_active,
        'is_featured': product.is_featured,
        'vendor_id': product.vendor_id,
        'category': serialize_category(product.category) if product.category else None,
        'inventory': serialize_inventory(product.inventory),
        'created_at': _iso(product.created_at),
    }
    if rating is not None:
        data.update(rating)
    if detailed:
        data['description'] = product.description
        data['variants'] = [serialize_variant(v) for v in product.variants]
    return data


def serialize_cart_item(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'product_id': item.product_id,
        'variant_id': item.variant_id,
        'quantity': item.quantity,
        'unit_price': money_str(item.unit_price),
        'line_total': money_str(item.line_total),
        'product': {
            'id': item.product.id,
            'title': item.product.title,
            'slug': item.product.slug,
            'price': money_str(item.product.price),
            'is_active': item.product.is_active,
        },
        'variant': serialize_variant(item.variant),
        'inventory': serialize_inventory(item.inventory),
    }


def serialize_cart(cart: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'items': [serialize_cart_item(item) for item in cart['items']],
        'subtotal': money_str(cart['subtotal']),
        'item_count': cart['item_count'],
    }


def serialize_order_line(line) -> Dict[str, Any]:
    return {
        'id': line.id,
        'product_id': line.product_id,
        'variant_id': line.variant_id,
        'quantity': line.quantity,
        'price': money_str(line.price),
        'total': money_str(line.total),
        'product_title': line.product.title if line.product else None,
        'variant_title': line.variant.title if line.variant else None,
    }


def serialize_payment(payment) -> Dict[str, Any]:
    return {
        'id': payment.id,
        'order_id': payment.order_id,
        'amount': money_str(payment.amount),
        'currency': payment.currency,
        'status': _enum_value(payment.status),
        'payment_method': payment.payment_method,
        'transaction_id': payment.transaction_id,
        'refunded_amount': money_str(payment.refunded_amount),
        'refunded_at': _iso(payment.refunded_at),
        'created_at': _iso(payment.created_at),
    }


def serialize_order(order, include_payments: bool = True) -> Dict[str, Any]:
    data = {
        'id': order.id,
        'order_number': order.order_number,
        'user_id': order.user_id,
        'status': _enum_value(order.status),
        'currency': order.currency,
        'subtotal': money_str(order.subtotal),
        'tax_amount': money_str(order.tax_amount),
        'shipping_amount': money_str(order.shipping_amount),
        'discount_amount': money_str(order.discount_amount),
        'total_amount': money_str(order.total_amount),
        'coupon_code': order.coupon_code,
        'notes': order.notes,
        'created_at': _iso(order.created_at),
        'shipped_at': _iso(order.shipped_at),
        'delivered_at': _iso(order.delivered_at),
        'billing_address': serialize_address(order.billing_address),
        'shipping_address': serialize_address(order.shipping_address),
        'items': [serialize_order_line(line) for line in order.lines],
    }
    if include_payments:
        data['payments'] = [serialize_payment(p) for p in order.payments]
    return data


def serialize_review(review) -> Dict[str, Any]:
    user = review.user
    return {
        'id': review.id,
        'product_id': review.product_id,
        'rating': review.rating,
        'title': review.title,
        'comment': review.comment,
        'is_verified': review.is_verified,
        'is_approved': review.is_approved,
        'created_at': _iso(review.created_at),
        'user': {
            'id': user.id,
            'first_name': user.first_name,
            'last_name': user.last_name,
        } if user else None,
    }


def serialize_wishlist_item(item) -> Dict[str, Any]:
    return {
        'id': item.id,
        'product_id': item.product_id,
        'product': serialize_product(item.product) if item.product else None,
        'created_at': _iso(item.created_at),
    }
