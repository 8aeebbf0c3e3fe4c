"""
Pytest fixtures for custody ledger tests.

Provides an in-memory database, a hand-driven ledger clock, and a few
ready-made identities and products.
"""

import hashlib

import pytest

from custody import create_app
from custody.extensions import db
from custody.services import product_service
from custody.time_utils import ManualClock


MANUFACTURER = "acme-pharma"
CARRIER = "northwind-logistics"
RETAILER = "corner-pharmacy"
STRANGER = "mallory"
INSPECTOR = "lab-inspector"

START_TICK = 1000


def sha(text: str) -> str:
    """Test helper: SHA-256 hex digest of text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_CLOCK': ManualClock(start=START_TICK),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def clock(app):
    """Fresh ManualClock installed as the ledger clock."""
    clock = ManualClock(start=START_TICK)
    app.config['LEDGER_CLOCK'] = clock
    return clock


@pytest.fixture(scope='function')
def db_session(app, clock):
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
def product_id(db_session):
    """Product registered by MANUFACTURER with lot L100."""
    return product_service.register_product(
        caller=MANUFACTURER,
        name="Insulin Pen",
        description="Prefilled pen, 3ml",
        lot_number="L100",
        category="pharmaceutical",
        origin_location="Basel Plant 2",
    )


@pytest.fixture(scope='function')
def cli_runner(app):
    return app.test_cli_runner()
