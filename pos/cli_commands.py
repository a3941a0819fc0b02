"""
Flask CLI commands for POS setup.

Commands:
- flask init-db: Create all tables
- flask seed-demo: Load a small demo catalog
"""

from datetime import date, timedelta
from decimal import Decimal

import click
from pos import database
from pos.models import (
    Customer, Product, ProductStock, Promotion,
    PROMOTION_TYPE_DISCOUNT, PROMOTION_TYPE_FREE_PRODUCT
)


def seed_demo_data(session):
    """Insert demo products, customers and promotions. Returns the created products."""
    specs = [
        ('Drinking water 600ml', 'bottle', '10.00', None, None, 200),
        ('Instant noodles', 'pack', '15.00', '14.00', '13.00', 120),
        ('Coffee beans 250g', 'bag', '100.00', '95.00', None, 30),
        ('Paper cup', 'pcs', '2.00', None, None, 500),
    ]
    products = []
    for name, unit, price1, price2, price3, stock in specs:
        product = Product(
            name=name,
            unit=unit,
            selling_price=Decimal(price1),
            selling_price_2=Decimal(price2) if price2 else None,
            selling_price_3=Decimal(price3) if price3 else None,
            active=True,
        )
        product.stock = ProductStock(on_hand_qty=stock)
        session.add(product)
        products.append(product)
    session.flush()

    session.add_all([
        Customer(name='Corner Cafe', customer_type='credit', credit_days=30),
        Customer(name='Regular cash customer', customer_type='cash'),
    ])

    today = date.today()
    water, noodles, coffee = products[:3]
    session.add_all([
        Promotion(
            name='Coffee 10% off',
            promotion_type=PROMOTION_TYPE_DISCOUNT,
            priority=10,
            discount_type='percent',
            discount_value=Decimal('10'),
            start_date=today,
            end_date=today + timedelta(days=30),
            products=[coffee],
        ),
        Promotion(
            name='Buy 3 noodles get 1 water',
            promotion_type=PROMOTION_TYPE_FREE_PRODUCT,
            priority=20,
            quantity_to_buy=3,
            quantity_to_get_free=1,
            free_product_id=water.id,
            start_date=today,
            end_date=today + timedelta(days=30),
            products=[noodles],
        ),
    ])
    session.commit()
    return products


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        database.create_all()
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('seed-demo')
    def seed_demo_command():
        """Load a demo catalog (products, customers, promotions)."""
        session = database.get_session()
        try:
            products = seed_demo_data(session)
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'Error seeding demo data: {e}', fg='red'))
            raise click.Abort()
        click.echo(click.style(f'Seeded {len(products)} products.', fg='green'))
