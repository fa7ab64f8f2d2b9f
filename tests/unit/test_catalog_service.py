"""
Unit tests for catalog management, listing and search.
"""

import pytest
from decimal import Decimal

from marketplace.exceptions import (
    NotFoundError, ForbiddenError, ConflictError, ValidationError
)
from marketplace.models import Category
from marketplace.services import catalog_service, review_service, search_service


def _product_data(**kwargs):
    data = {'title': 'Desk Lamp', 'sku': 'SKU-LAMP', 'price': '35.50', 'quantity': 4}
    data.update(kwargs)
    return data


class TestCreateProduct:

    def test_seller_creates_product_with_inventory(self, session, seller, category):
        product = catalog_service.create_product(
            session, seller.id, _product_data(category_id=category.id, tags=['desk', ' light '])
        )
        assert product.vendor_id == seller.vendor_profile.id
        assert product.slug == 'desk-lamp'
        assert product.price == Decimal('35.50')
        assert product.inventory.quantity == 4
        assert product.tag_list == ['desk', 'light']

    def test_variants_get_their_own_inventory(self, session, seller):
        product = catalog_service.create_product(session, seller.id, _product_data(variants=[
            {'sku': 'SKU-LAMP-W', 'title': 'White', 'price': '36.00', 'quantity': 2, 'attributes': {'color': 'white'}},
        ]))
        variant = product.variants[0]
        assert variant.inventory.quantity == 2
        assert variant.inventory.product_id == product.id
        assert product.inventory.quantity == 4

    def test_non_seller_is_forbidden(self, session, buyer):
        with pytest.raises(ForbiddenError):
            catalog_service.create_product(session, buyer.id, _product_data())

    def test_price_is_required(self, session, seller):
        with pytest.raises(ValidationError):
            catalog_service.create_product(session, seller.id, _product_data(price=None))

    def test_negative_quantity(self, session, seller):
        with pytest.raises(ValidationError):
            catalog_service.create_product(session, seller.id, _product_data(quantity=-1))

    def test_duplicate_sku(self, session, seller, product):
        with pytest.raises(ConflictError):
            catalog_service.create_product(session, seller.id, _product_data(sku=product.sku))

    def test_slug_is_made_unique(self, session, seller):
        first = catalog_service.create_product(session, seller.id, _product_data())
        second = catalog_service.create_product(session, seller.id, _product_data(sku='SKU-LAMP-2'))
        assert first.slug == 'desk-lamp'
        assert second.slug == 'desk-lamp-2'

    def test_unknown_category(self, session, seller):
        with pytest.raises(NotFoundError):
            catalog_service.create_product(session, seller.id, _product_data(category_id=404))


class TestUpdateProduct:

    def test_owner_updates_price_and_stock(self, session, seller, product):
        updated = catalog_service.update_product(session, product.id, seller.id, {'price': '18.00', 'quantity': 7})
        assert updated.price == Decimal('18.00')
        assert updated.inventory.quantity == 7

    def test_other_seller_is_forbidden(self, session, other_seller, product):
        with pytest.raises(ForbiddenError):
            catalog_service.update_product(session, product.id, other_seller.id, {'price': '1.00'})

    def test_deactivate(self, session, seller, product):
        assert catalog_service.deactivate_product(session, product.id, seller.id).is_active is False
        assert catalog_service.list_products(session)['pagination']['total'] == 0


class TestListProducts:

    def test_only_active_products(self, session, product, product_b):
        product_b.is_active = False
        session.commit()
        result = catalog_service.list_products(session)
        assert [p['sku'] for p in result['products']] == ['SKU-WIDGET']

    def test_price_range_and_sort(self, session, product, product_b, untracked_product):
        result = catalog_service.list_products(
            session, min_price=Decimal('10'), max_price=Decimal('100'), sort_by='price', sort_order='asc'
        )
        assert [p['price'] for p in result['products']] == ['15.00', '20.00']

    def test_category_by_slug(self, session, product):
        other = Category(name='Books', slug='books')
        session.add(other)
        session.commit()
        assert catalog_service.list_products(session, category='gadgets')['pagination']['total'] == 1
        assert catalog_service.list_products(session, category='books')['pagination']['total'] == 0

    def test_search_filter_matches_tags(self, session, product, product_b):
        result = catalog_service.list_products(session, search='TOOLS')
        assert [p['id'] for p in result['products']] == [product.id]

    def test_ratings_are_attached(self, session, buyer, product):
        review_service.create_review(session, buyer.id, product.id, 4)
        listed = catalog_service.list_products(session)['products'][0]
        assert listed['average_rating'] == 4.0
        assert listed['review_count'] == 1

    def test_pagination(self, session, product, product_b, untracked_product):
        result = catalog_service.list_products(session, page=2, limit=2)
        assert len(result['products']) == 1
        assert result['pagination'] == {'page': 2, 'limit': 2, 'total': 3, 'pages': 2}

    def test_invalid_sort_field(self, session):
        with pytest.raises(ValidationError):
            catalog_service.list_products(session, sort_by='stock')

    def test_related_products(self, session, product, product_b):
        assert [p.id for p in catalog_service.get_related(session, product.id)] == [product_b.id]


class TestCategories:

    def test_tree_nests_active_children(self, session, seller, category):
        child = catalog_service.create_category(session, seller.id, {'name': 'Phones', 'parent_id': category.id})
        hidden = catalog_service.create_category(session, seller.id, {'name': 'Pagers', 'parent_id': category.id})
        catalog_service.deactivate_category(session, hidden.id, seller.id)

        tree = catalog_service.get_category_tree(session)
        assert len(tree) == 1
        assert tree[0]['slug'] == 'gadgets'
        assert [c['id'] for c in tree[0]['children']] == [child.id]

    def test_get_by_id_or_slug(self, session, category):
        assert catalog_service.get_category(session, str(category.id)).id == category.id
        assert catalog_service.get_category(session, 'gadgets').id == category.id

    def test_buyer_cannot_create(self, session, buyer):
        with pytest.raises(ForbiddenError):
            catalog_service.create_category(session, buyer.id, {'name': 'Nope'})

    def test_category_cannot_parent_itself(self, session, seller, category):
        with pytest.raises(ValidationError):
            catalog_service.update_category(session, category.id, seller.id, {'parent_id': category.id})

    @pytest.mark.parametrize('sort_order', ['abc', True, [1]])
    def test_sort_order_must_be_an_integer(self, session, seller, category, sort_order):
        with pytest.raises(ValidationError):
            catalog_service.create_category(session, seller.id, {'name': 'X', 'sort_order': sort_order})
        with pytest.raises(ValidationError):
            catalog_service.update_category(session, category.id, seller.id, {'sort_order': sort_order})

    def test_numeric_strings_and_flag_spellings_are_coerced(self, session, seller):
        created = catalog_service.create_category(
            session, seller.id, {'name': 'Cables', 'sort_order': '3', 'is_active': 'false'}
        )
        assert created.sort_order == 3
        assert created.is_active is False

        updated = catalog_service.update_category(session, created.id, seller.id, {'is_active': 'yes'})
        assert updated.is_active is True


class TestSearch:

    def test_matches_short_description(self, session, product, product_b):
        result = search_service.search(session, 'small')
        assert result['query'] == 'small'
        assert [p['id'] for p in result['products']] == [product_b.id]

    def test_empty_query(self, session):
        with pytest.raises(ValidationError):
            search_service.search(session, '   ')

    def test_autocomplete(self, session, product, product_b):
        assert search_service.autocomplete(session, 'wid') == [
            {'id': product.id, 'title': 'Widget', 'slug': product.slug}
        ]
        assert search_service.autocomplete(session, '') == []
