"""
Pytest fixtures for Duka backend tests.

Provides an in-memory database, the test client, staff users with bearer
tokens, and a product factory.
"""

from decimal import Decimal

import pytest

from duka import create_app
from duka.extensions import db
from duka.models import Product
from duka.services.auth_service import create_user
from duka.services.dashboard_service import CACHE_EXTENSION_KEY
from duka.services.session_service import create_session

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
        'CORS_ORIGINS': ['http://localhost:5173'],
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table (schema stays) and drop cached dashboard payloads."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()
    app.extensions[CACHE_EXTENSION_KEY].invalidate()

    yield db.session

    db.session.rollback()


def _user_with_token(username: str, role: str):
    user = create_user(username, f"{username}@duka.test", TEST_PASSWORD, role=role)
    _, token = create_session(user.id)
    return user, {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin(db_session):
    return _user_with_token("admin", "admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return _user_with_token("manager", "manager")


@pytest.fixture(scope='function')
def cashier(db_session):
    return _user_with_token("cashier", "cashier")


@pytest.fixture(scope='function')
def admin_headers(admin):
    return admin[1]


@pytest.fixture(scope='function')
def manager_headers(manager):
    return manager[1]


@pytest.fixture(scope='function')
def cashier_headers(cashier):
    return cashier[1]


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(stock=10, price="100.00", name=...)."""
    counter = {"n": 0}

    def _make(*, stock: int = 10, price="100.00", name: str | None = None,
              category: str = "Groceries", low_stock_threshold: int = 5) -> Product:
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            category=category,
            price=Decimal(str(price)),
            stock_quantity=stock,
            low_stock_threshold=low_stock_threshold,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product with 10 on hand at 100.00."""
    return make_product(stock=10, price="100.00", name="Maize Flour 2kg")


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Fresh read of on-hand quantity, bypassing the identity map."""
    def _read(product_id: str) -> int:
        db_session.expire_all()
        return db_session.get(Product, product_id).stock_quantity

    return _read
