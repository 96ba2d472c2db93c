"""
Pytest fixtures for kiosk backend tests.

Provides test database setup, catalog/customer fixtures, and test client.
"""

import pytest

from kiosk import create_app
from kiosk.extensions import db
from kiosk.models import Category, Customer, Product, ProductVariant, Transaction, TransactionItem
from kiosk.services import concurrency, notification_service


ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ADMIN_API_TOKEN': ADMIN_TOKEN,
        'SLACK_AUTH_TOKEN': None,
        'EMAIL_SERVER_HOST': None,
        'PAYMENT_LINK': '',
        'ADMIN_EMAILS': '',
        'DEFAULT_MARKUP_FACTOR': 1.1,
        'CURRENCY': 'USD',
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
def no_backoff(monkeypatch):
    """Retry immediately; records each backoff delay."""
    delays = []
    monkeypatch.setattr(concurrency.time, "sleep", delays.append)
    return delays


@pytest.fixture(scope='function')
def sent(monkeypatch):
    """Capture outbound notifications instead of talking to Slack/SMTP."""
    calls = []

    def fake_slack(**kwargs):
        calls.append(("slack", kwargs))
        return True

    def fake_email(to_email, subject, html, text=None):
        calls.append(("email", {"to": to_email, "subject": subject, "html": html}))
        return True

    monkeypatch.setattr(notification_service, "post_slack_message", fake_slack)
    monkeypatch.setattr(notification_service, "send_email", fake_email)
    return calls


@pytest.fixture(scope='function')
def admin_headers():
    return auth_headers(ADMIN_TOKEN)


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(title="Snacks", icon="cookie")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    """Plain product: 10 on hand at purchase price 5, sells for 6."""
    product = Product(name="Chocolate bar", price=6.0, stock=10, purchase_price=5.0, category_id=category.id)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def variant_product(db_session):
    """Product with two variants carrying their own stock and cost."""
    product = Product(name="Coffee", price=0.0, stock=0, purchase_price=0.0)
    product.variants.extend([
        ProductVariant(name="Large", price=25.0, stock=3, purchase_price=14.0),
        ProductVariant(name="Small", price=15.0, stock=5, purchase_price=8.0),
    ])
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Alice", email="alice@example.com", role="USER")
    db_session.add(customer)
    db_session.commit()
    return customer


def make_transaction(customer, total, *, paid=False, pending=False, items=None, timestamp=None):
    """Insert a transaction directly (bypassing checkout) and return it."""
    tx = Transaction(
        customer_id=customer.id if hasattr(customer, "id") else customer,
        customer_name=getattr(customer, "name", "Someone"),
        total=total,
        paid=paid,
        pending=pending,
    )
    if timestamp is not None:
        tx.timestamp = timestamp
    for position, item in enumerate(items or []):
        tx.items.append(TransactionItem(position=position, **item))
    db.session.add(tx)
    db.session.commit()
    return tx


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
