"""
Pytest fixtures for backend tests.

Provides test database setup, two isolated tenants with their branches,
safes, banks, stores, items and trading partners, and a test client.

Business dates used by the tests fall inside OPEN_YEAR (2024); CLOSED_YEAR
(2023) is closed.
"""

from datetime import date

import pytest
from app import create_app
from app.extensions import db
from app.models import (
    Organization, Branch, Store, Safe, Bank, FiscalYear,
    Customer, Supplier, Item,
)
from app.models.inventory import ITEM_TYPE_STOCKED, ITEM_TYPE_SERVICE
from app.services import stock_ledger_service

DOC_DATE = "2024-06-15"
CLOSED_DATE = "2023-06-15"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'POSTING_RETRY_ATTEMPTS': 1,
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


def balance_of(model, row_id: int) -> int:
    """Fresh balance read straight from the table."""
    return db.session.query(model.current_balance_cents).filter_by(id=row_id).scalar()


def stock_of(item_id: int, store_id: int | None = None) -> int:
    return stock_ledger_service.balance(store_id, item_id)


# =============================================================================
# TENANT A
# =============================================================================

@pytest.fixture(scope='function')
def org_a(db_session):
    """Organization A (VAT 15%)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True, is_vat_enabled=True, vat_rate_bps=1500)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def branch_a(db_session, org_a):
    branch = Branch(org_id=org_a.id, name="Main Branch", code="MAIN")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def safe_a(db_session, org_a, branch_a):
    safe = Safe(org_id=org_a.id, branch_id=branch_a.id, name="Main Safe", current_balance_cents=0)
    db_session.add(safe)
    db_session.commit()
    return safe


@pytest.fixture(scope='function')
def bank_a(db_session, org_a):
    bank = Bank(org_id=org_a.id, name="Acme Bank", account_number="001", current_balance_cents=0)
    db_session.add(bank)
    db_session.commit()
    return bank


@pytest.fixture(scope='function')
def store_a(db_session, org_a, branch_a):
    store = Store(org_id=org_a.id, branch_id=branch_a.id, name="Store A1", code="A1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def item_a(db_session, org_a):
    """STOCKED item in Organization A."""
    item = Item(
        org_id=org_a.id,
        code="ITEM-A-001",
        name="Widget",
        type=ITEM_TYPE_STOCKED,
        sale_price_cents=10000,
        purchase_price_cents=6000,
        stock=0,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def service_item_a(db_session, org_a):
    """SERVICE item in Organization A (never moves stock)."""
    item = Item(
        org_id=org_a.id,
        code="SRV-A-001",
        name="Installation",
        type=ITEM_TYPE_SERVICE,
        sale_price_cents=5000,
        stock=0,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def customer_a(db_session, org_a):
    customer = Customer(org_id=org_a.id, code="C-001", name="Customer A", current_balance_cents=0)
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def supplier_a(db_session, org_a):
    supplier = Supplier(org_id=org_a.id, code="S-001", name="Supplier A", current_balance_cents=0)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def open_year_a(db_session, org_a):
    fy = FiscalYear(org_id=org_a.id, name="FY2024", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31), status="OPEN")
    db_session.add(fy)
    db_session.commit()
    return fy


@pytest.fixture(scope='function')
def closed_year_a(db_session, org_a):
    fy = FiscalYear(org_id=org_a.id, name="FY2023", start_date=date(2023, 1, 1), end_date=date(2023, 12, 31), status="CLOSED")
    db_session.add(fy)
    db_session.commit()
    return fy


@pytest.fixture(scope='function')
def stocked_store_a(db_session, org_a, store_a, item_a):
    """store_a holding 100 units of item_a."""
    stock_ledger_service.receive_stock(
        org_id=org_a.id, store_id=store_a.id, item_id=item_a.id, quantity=100, movement_type="OPENING"
    )
    return store_a


@pytest.fixture(scope='function')
def tenant_a(org_a, branch_a, safe_a, bank_a, store_a, item_a, service_item_a,
             customer_a, supplier_a, open_year_a, closed_year_a, stocked_store_a):
    """Everything Organization A needs to post documents, as a namespace of ids."""
    class Tenant:
        org_id = org_a.id
        branch_id = branch_a.id
        safe_id = safe_a.id
        bank_id = bank_a.id
        store_id = store_a.id
        item_id = item_a.id
        service_item_id = service_item_a.id
        customer_id = customer_a.id
        supplier_id = supplier_a.id
        open_year_id = open_year_a.id
        closed_year_id = closed_year_a.id
    return Tenant


# =============================================================================
# TENANT B
# =============================================================================

@pytest.fixture(scope='function')
def org_b(db_session):
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def tenant_b(db_session, org_b):
    """Organization B with a branch, safe, store, item and customer."""
    branch = Branch(org_id=org_b.id, name="Beta Branch")
    db_session.add(branch)
    db_session.flush()
    safe = Safe(org_id=org_b.id, branch_id=branch.id, name="Beta Safe", current_balance_cents=0)
    store = Store(org_id=org_b.id, branch_id=branch.id, name="Store B1", code="B1")
    item = Item(org_id=org_b.id, code="ITEM-B-001", name="Gadget", type=ITEM_TYPE_STOCKED, stock=0)
    customer = Customer(org_id=org_b.id, code="C-001", name="Customer B", current_balance_cents=0)
    bank = Bank(org_id=org_b.id, name="Beta Bank", current_balance_cents=0)
    db_session.add_all([safe, store, item, customer, bank])
    db_session.add(FiscalYear(org_id=org_b.id, name="FY2024", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31), status="OPEN"))
    db_session.commit()

    class Tenant:
        org_id = org_b.id
        branch_id = branch.id
        safe_id = safe.id
        bank_id = bank.id
        store_id = store.id
        item_id = item.id
        customer_id = customer.id
    return Tenant


def tenant_headers(org_id: int, user_id: int | None = None) -> dict:
    """Helper to build the gateway headers for a tenant."""
    headers = {'X-Org-Id': str(org_id)}
    if user_id is not None:
        headers['X-User-Id'] = str(user_id)
    return headers
