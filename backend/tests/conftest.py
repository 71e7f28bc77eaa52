"""
Pytest fixtures for ShopSync backend tests.

Provides an in-memory database, seeded loyalty configuration, a small
product catalogue and a test client.
"""

from datetime import datetime

import pytest

from shopsync import create_app
from shopsync.extensions import db
from shopsync.models import Customer, LoyaltyTransaction, Product
from shopsync.services import settings_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
    """Fresh tables for each test."""
    db.session.remove()
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def loyalty_defaults(db_session):
    """Default earning rule, redemption rule, expiry settings and base tier."""
    settings_service.ensure_loyalty_defaults()
    return db_session


@pytest.fixture(scope='function')
def products(db_session):
    """Three stocked products keyed by id."""
    rows = [
        Product(id="oil-1l", name="Engine Oil 1L", quantity=10, purchase_price_cents=30000, sale_price_cents=45000),
        Product(id="spark-plug", name="Spark Plug", quantity=20, purchase_price_cents=8000, sale_price_cents=15000),
        Product(id="chain-kit", name="Chain Kit", quantity=2, purchase_price_cents=90000, sale_price_cents=150000),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {p.id: p for p in rows}


def make_customer(session, code="ABC123", points=0, balance_cents=0, seen_at=None, tier_id=None):
    """
    Insert a customer directly. A positive opening balance of points gets a
    matching EARNED entry so the ledger stays consistent.
    """
    seen_at = seen_at or datetime(2026, 10, 1, 9, 0, 0)
    customer = Customer(
        id=code,
        name=f"Customer {code}",
        first_seen=seen_at,
        last_seen=seen_at,
        loyalty_points=points,
        tier_id=tier_id,
        balance_cents=balance_cents,
        manual_visit_adjustment=0,
    )
    session.add(customer)
    if points:
        session.add(LoyaltyTransaction(
            id=f"seed-{code}",
            customer_id=code,
            transaction_type="EARNED",
            points=points,
            points_before=0,
            points_after=points,
            occurred_at=seen_at,
        ))
    session.commit()
    return customer


def line(product_id, quantity=1, price_cents=10000, **extra):
    """Cart line payload as the POS sends it."""
    item = {
        "product_id": product_id,
        "name": extra.pop("name", product_id),
        "quantity": quantity,
        "original_price_cents": price_cents,
    }
    item.update(extra)
    return item
