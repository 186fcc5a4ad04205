"""
Pytest fixtures for StoreOps backend tests.

Provides the app on an in-memory database, a per-test clean database,
a controllable clock, and two stores in different timezones.
"""

import pytest

from storeops import create_app
from storeops.extensions import db
from storeops.repositories import default_repositories
from storeops.services import store_service
from storeops.time_utils import FixedClock


DEFAULT_NOW = "2024-03-02T09:15:00Z"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(
        config_overrides={
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'EVENTS_DISPATCH_INLINE': False,
            'TRANSACTION_RETRY_BACKOFF': 0,
        },
        clock=FixedClock(DEFAULT_NOW),
    )

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function', autouse=True)
def clock(app):
    """The app clock, reset to DEFAULT_NOW for every test."""
    fixed = app.extensions["clock"]
    fixed.set(DEFAULT_NOW)
    return fixed


@pytest.fixture(scope='function')
def repos(db_session):
    return default_repositories()


@pytest.fixture(scope='function')
def accra(db_session):
    """Store in Africa/Accra (UTC+0, no DST)."""
    return store_service.create_store(store_id="accra-1", name="Accra Central", timezone="Africa/Accra")


@pytest.fixture(scope='function')
def new_york(db_session):
    """Store in America/New_York (UTC-5 in early March)."""
    return store_service.create_store(store_id="nyc-1", name="NYC Midtown", timezone="America/New_York")


def make_product(product_id, store_id, *, name=None, price=10.0, stock=100):
    return store_service.create_product(
        product_id=product_id,
        store_id=store_id,
        name=name or f"Product {product_id}",
        price=price,
        stock_count=stock,
    )


def sale_payload(sale_id, store_id, items, *, method="cash", total=None, tenders=None):
    """commitSale request body; items are (product_id, qty, price) tuples."""
    body = {
        "saleId": sale_id,
        "storeId": store_id,
        "items": [
            {"productId": product_id, "qty": qty, "price": price}
            for product_id, qty, price in items
        ],
        "payment": {"method": method},
    }
    if total is not None:
        body["totals"] = {"total": total}
    if tenders is not None:
        body["tenders"] = tenders
    return body
