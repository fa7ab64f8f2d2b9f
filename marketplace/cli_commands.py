"""
Flask CLI commands.

Commands:
- flask init-db: Create database tables
- flask seed-catalog: Load a sample seller, catalog and coupon
- flask issue-token: Print a bearer token for a user
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import click
from sqlalchemy.exc import SQLAlchemyError

from marketplace.database import create_tables, get_session
from marketplace.middleware import issue_token
from marketplace.models import (
    User, VendorProfile, Category, Product, Inventory, Coupon, CouponType
)


SAMPLE_CATEGORIES = [
    ('Electronics', 'electronics', None),
    ('Phones', 'phones', 'electronics'),
    ('Home', 'home', None),
]

SAMPLE_PRODUCTS = [
    ('SKU-PHN-001', 'Basic Phone', 'phones', Decimal('99.00'), 25, True),
    ('SKU-HDP-001', 'Wireless Headphones', 'electronics', Decimal('20.00'), 40, True),
    ('SKU-MUG-001', 'Ceramic Mug', 'home', Decimal('15.00'), 100, False),
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_tables()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('seed-catalog')
    @click.option('--email', default='seller@example.com', show_default=True, help='Seller account email')
    def seed_catalog(email):
        """Create a sample seller, categories, products with stock and a SAVE20 coupon."""
        session = get_session()

        if session.query(Product).first() is not None:
            click.echo(click.style('Catalog already has products; nothing to do.', fg='yellow'))
            return

        try:
            seller = session.query(User).filter_by(email=email).first()
            if seller is None:
                seller = User(email=email, first_name='Sample', last_name='Seller')
                session.add(seller)
                session.flush()
            vendor = seller.vendor_profile
            if vendor is None:
                vendor = VendorProfile(user_id=seller.id, store_name='Sample Store', slug='sample-store')
                session.add(vendor)
                session.flush()

            categories = {}
            for name, slug, parent_slug in SAMPLE_CATEGORIES:
                category = Category(
                    name=name,
                    slug=slug,
                    parent_id=categories[parent_slug].id if parent_slug else None
                )
                session.add(category)
                session.flush()
                categories[slug] = category

            for sku, title, category_slug, price, quantity, featured in SAMPLE_PRODUCTS:
                product = Product(
                    vendor_id=vendor.id,
                    category_id=categories[category_slug].id,
                    sku=sku,
                    title=title,
                    slug=sku.lower(),
                    price=price,
                    is_featured=featured
                )
                product.inventory_records.append(Inventory(quantity=quantity, low_stock_threshold=5))
                session.add(product)

            session.add(Coupon(
                code='SAVE20',
                type=CouponType.FIXED,
                value=Decimal('20.00'),
                is_active=True,
                expires_at=datetime.now(timezone.utc) + timedelta(days=365)
            ))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise click.ClickException(f'Seeding failed: {e}')

        click.echo(click.style('Sample catalog created.', fg='green', bold=True))
        click.echo(f'   Seller: {seller.email} (user id {seller.id})')
        click.echo(f'   Products: {len(SAMPLE_PRODUCTS)}')
        click.echo('   Coupon: SAVE20')

    @app.cli.command('issue-token')
    @click.option('--user-id', type=int, required=True, help='User id to sign the token for')
    @click.option('--hours', type=int, default=None, help='Expiry in hours (default JWT_EXPIRES_HOURS)')
    def issue_token_command(user_id, hours):
        """Print a bearer token for local testing."""
        user = get_session().query(User).filter_by(id=user_id).first()
        if user is None:
            raise click.ClickException(f'User {user_id} not found')
        click.echo(issue_token(user.id, hours))
