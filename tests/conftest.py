import pytest
from datetime import date, timedelta
from decimal import Decimal

from pos import create_app
from pos import database
from pos.models import (
    Customer, Product, ProductStock, Promotion,
    PROMOTION_TYPE_DISCOUNT, PROMOTION_TYPE_FREE_PRODUCT
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite)."""
    app = create_app('config.TestConfig')
    return app


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema and database session for each test."""
    database.create_all()
    session = database.get_session()
    yield session
    session.rollback()
    session.remove()
    database.drop_all()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def make_product(session):
    """Factory: create a product with stock and return its snapshot."""
    def _make(name, price, stock, price_2=None, price_3=None, active=True, unit='pcs'):
        product = Product(
            name=name,
            unit=unit,
            selling_price=Decimal(str(price)),
            selling_price_2=Decimal(str(price_2)) if price_2 is not None else None,
            selling_price_3=Decimal(str(price_3)) if price_3 is not None else None,
            active=active,
        )
        product.stock = ProductStock(on_hand_qty=stock)
        session.add(product)
        session.commit()
        return product.to_snapshot()
    return _make


@pytest.fixture(scope='function')
def make_promotion(session):
    """Factory: create a promotion row and return its id."""
    def _make(name, promotion_type, product_ids, priority=0, start_date=None, end_date=None,
              status='active', **fields):
        today = date.today()
        promotion = Promotion(
            name=name,
            promotion_type=promotion_type,
            priority=priority,
            start_date=start_date or today - timedelta(days=1),
            end_date=end_date or today + timedelta(days=1),
            status=status,
            products=[session.get(Product, pid) for pid in product_ids],
            **fields
        )
        session.add(promotion)
        session.commit()
        return promotion.id
    return _make


@pytest.fixture(scope='function')
def water(make_product):
    return make_product('Drinking water', '10.00', 200)


@pytest.fixture(scope='function')
def noodles(make_product):
    return make_product('Instant noodles', '15.00', 120, price_2='14.00', price_3='13.00')


@pytest.fixture(scope='function')
def coffee(make_product):
    return make_product('Coffee beans', '100.00', 30, price_2='95.00')


@pytest.fixture(scope='function')
def coffee_discount(make_promotion, coffee):
    """10% off coffee."""
    return make_promotion(
        'Coffee 10% off', PROMOTION_TYPE_DISCOUNT, [coffee.id],
        priority=10, discount_type='percent', discount_value=Decimal('10'),
    )


@pytest.fixture(scope='function')
def noodles_free_water(make_promotion, noodles, water):
    """Buy 3 noodles, get 1 water free."""
    return make_promotion(
        'Buy 3 noodles get 1 water', PROMOTION_TYPE_FREE_PRODUCT, [noodles.id],
        priority=20, free_product_id=water.id, quantity_to_buy=3, quantity_to_get_free=1,
    )


@pytest.fixture(scope='function')
def credit_customer(session):
    customer = Customer(name='Corner Cafe', customer_type='credit', credit_days=30)
    session.add(customer)
    session.commit()
    return customer.to_snapshot()


@pytest.fixture(scope='function')
def cash_customer(session):
    customer = Customer(name='Regular cash customer', customer_type='cash')
    session.add(customer)
    session.commit()
    return customer.to_snapshot()
