"""
Pytest fixtures for the commerce backend tests.

Provides the test database, a per-test table wipe, factory fixtures for the
collaborator records and catalog, and the Flask test client.
"""

import pytest

from papeleria import create_app
from papeleria.extensions import db
from papeleria.models.catalog import PRODUCT_TYPE_PHYSICAL
from papeleria.services import directory_service, register_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'REPORT_TIMEZONE': 'America/Bogota',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
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
def cashier(db_session):
    return directory_service.create_user("cajero", "Ana", "Caja")


@pytest.fixture(scope='function')
def other_cashier(db_session):
    return directory_service.create_user("cajero2", "Luis", "Caja")


@pytest.fixture(scope='function')
def customer(db_session):
    return directory_service.create_customer("Marta", "Gomez", "1020304050")


@pytest.fixture(scope='function')
def supplier(db_session):
    return directory_service.create_supplier("Distribuidora Central", "900123456-7")


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(stock=5, price_cents=1000, ...)."""
    counter = {'n': 0}

    def _make(
        name=None,
        *,
        stock=10,
        price_cents=1000,
        cost_cents=600,
        min_stock=2,
        product_type=PRODUCT_TYPE_PHYSICAL,
        category_id=None,
        category_name=None,
    ):
        counter['n'] += 1
        return directory_service.create_product(
            name or f"Producto {counter['n']}",
            price_cents,
            stock=stock,
            min_stock=min_stock,
            cost_cents=cost_cents,
            product_type=product_type,
            sku=f"SKU-{counter['n']:03d}",
            category_id=category_id,
            category_name=category_name,
        )

    return _make


@pytest.fixture(scope='function')
def make_service(db_session):
    def _make(name="Fotocopia", price_cents=200):
        return directory_service.create_service(name, price_cents)

    return _make


@pytest.fixture(scope='function')
def open_register(cashier):
    """An OPEN register for the cashier with a 100.00 float."""
    return register_service.open_register(cashier.id, 10000)
