"""
Pytest fixtures for Sellytics backend tests.

Provides test database setup, store context fixtures, and test client.
"""

import pytest
from sellytics import create_app
from sellytics.extensions import db, datastore
from sellytics.services import customer_service, products_service
from sellytics.services.context import StoreContext


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 5,
        'REVERSE_QUANTITY_SOLD_ON_DELETE': False,
        'ENFORCE_STORE_WIDE_DEVICE_IDS': False,
    })

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


@pytest.fixture(scope='function')
def store(db_session):
    """Create Store A."""
    return datastore.insert("stores", [{"name": "Store A", "owner_email": "owner@a.test"}])[0]


@pytest.fixture(scope='function')
def other_store(db_session):
    """Create Store B (second tenant)."""
    return datastore.insert("stores", [{"name": "Store B"}])[0]


@pytest.fixture(scope='function')
def ctx(store):
    return StoreContext(store_id=store.id, user_id=7)


@pytest.fixture(scope='function')
def other_ctx(other_store):
    return StoreContext(store_id=other_store.id, user_id=8)


@pytest.fixture(scope='function')
def product(ctx):
    """Product P: batch of 5 bought for 2500 total, sells at 1000."""
    return products_service.create_product(
        ctx,
        "Phone P",
        purchase_price_cents=2500,
        purchase_qty=5,
        selling_price_cents=1000,
    )


@pytest.fixture(scope='function')
def second_product(ctx):
    return products_service.create_product(
        ctx,
        "Charger Q",
        purchase_price_cents=600,
        purchase_qty=3,
        selling_price_cents=300,
    )


@pytest.fixture(scope='function')
def customer(ctx):
    return customer_service.create_customer(ctx, "Ada Obi", phone="0800000000")


@pytest.fixture(scope='function')
def headers(store):
    return {"X-Store-Id": str(store.id), "X-User-Id": "7"}
