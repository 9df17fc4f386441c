"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, role/user/item fixtures, and test client.
"""

import pytest

from stockledger import create_app
from stockledger.config import TestingConfig
from stockledger.extensions import db
from stockledger.models import Item
from stockledger.models.transactions import INITIAL_STOCK
from stockledger.services import permission_service, session_service
from stockledger.services.auth_service import create_user
from stockledger.services.fingerprint_service import FingerprintEngine
from stockledger.services.ledger_service import LedgerService, build_ledger_service
from stockledger.services.transaction_store import TransactionStore


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
def setup_roles(db_session):
    """Setup default roles and permissions."""
    permission_service.initialize_permissions()
    permission_service.create_default_roles()


@pytest.fixture(scope='function')
def make_user(db_session, setup_roles):
    """Factory: make_user("alice", "Manager")."""
    def _make(username: str, role_name: str):
        return create_user(
            username=username,
            email=f"{username}@stockledger.test",
            password="Password123!",
            role_name=role_name,
        )
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin", "Admin")


@pytest.fixture(scope='function')
def manager_user(make_user):
    return make_user("manager", "Manager")


@pytest.fixture(scope='function')
def viewer_user(make_user):
    return make_user("viewer", "Viewer")


@pytest.fixture(scope='function')
def buyer_user(make_user):
    return make_user("buyer", "Buyer")


@pytest.fixture(scope='function')
def ledger(app, db_session):
    """LedgerService bound to the test session."""
    return build_ledger_service(db_session, app.config)


@pytest.fixture(scope='function')
def make_item(db_session, ledger, admin_user):
    """
    Factory: make_item(stock=10, sku="W-1").

    Opening stock is booked as an initial_stock transaction so that stock
    always equals the ledger sum.
    """
    counter = {"n": 0}

    def _make(stock: int = 0, sku: str | None = None, unit_price_cents: int = 500,
              sale_price_cents: int = 900, name: str | None = None, reorder_point: int | None = None):
        counter["n"] += 1
        item = Item(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=name or f"Widget {counter['n']}",
            unit_price_cents=unit_price_cents,
            sale_price_cents=sale_price_cents,
            reorder_point=reorder_point,
            current_stock=0,
        )
        db_session.add(item)
        db_session.commit()
        if stock:
            ledger.record_adjustment(
                item_id=item.id,
                transaction_type=INITIAL_STOCK,
                quantity=stock,
                acting_user_id=admin_user.id,
            )
        return item

    return _make


def auth_headers(user) -> dict:
    """Helper to create Authorization headers with a fresh session token."""
    _session, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return auth_headers(manager_user)


@pytest.fixture(scope='function')
def viewer_headers(viewer_user):
    return auth_headers(viewer_user)


@pytest.fixture(scope='function')
def buyer_headers(buyer_user):
    return auth_headers(buyer_user)


class BrokenEngine(FingerprintEngine):
    """Fingerprint engine that fails for quantities in `fail_on` (all when None)."""

    def __init__(self, fail_on=None):
        super().__init__(explorer_url_template="https://explorer.test/{digest}")
        self.fail_on = fail_on

    def compute(self, transaction):
        if self.fail_on is None or transaction.quantity in self.fail_on:
            raise RuntimeError("hash backend unavailable")
        return super().compute(transaction)


@pytest.fixture(scope='function')
def broken_engine():
    """Factory: broken_engine() fails every digest, broken_engine({2}) only quantity 2."""
    return BrokenEngine


@pytest.fixture(scope='function')
def unsealed_ledger(db_session):
    """LedgerService whose digest step always fails; rows stay without a digest."""
    return LedgerService(TransactionStore(db_session, backoff_base=0), fingerprint=BrokenEngine())
