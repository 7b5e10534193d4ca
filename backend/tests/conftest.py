"""
Pytest fixtures for StockPOS backend tests.

Provides test database setup, catalog factories, and an authenticated test client.
"""

import pytest

from stockpos import create_app
from stockpos.extensions import db
from stockpos.services import catalog_service


TEST_TOKENS = {
    "cashier-token": "cashier-1",
    "manager-token": "manager-1",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'API_TOKENS': dict(TEST_TOKENS),
        'CHECKOUT_RETRY_ATTEMPTS': 3,
        'CHECKOUT_RETRY_BACKOFF': 0,
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
def auth_headers():
    return {"Authorization": "Bearer cashier-token"}


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a committed product through the catalog service."""
    def _make(name="Cafe 500g", price_cents=1550, stock_quantity=10, **extra):
        patch = {"name": name, "price_cents": price_cents, "stock_quantity": stock_quantity}
        patch.update(extra)
        return catalog_service.create_product(patch=patch, actor_id="test-user")
    return _make
