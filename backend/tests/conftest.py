"""
Pytest fixtures for GemsTrack backend tests.

Provides test database setup, seeded catalogue/rates, and test client.
"""

import pytest
from gemstrack import create_app
from gemstrack.extensions import db
from gemstrack.services import document_service, inventory_service, settings_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'TRANSACTION_RETRY_BACKOFF': 0,
    'LOG_LEVEL': 'WARNING',
}

# Rates of the day used throughout the suite (per gram)
DEFAULT_TEST_RATES = {
    'gold:18k': '170',
    'gold:21k': '200',
    'gold:22k': '210',
    'gold:24k': '230',
    'palladium': '300',
    'platinum': '350',
    'silver': '3',
}

# The worked example: 10 g of 21k, 10 % wastage, 500 labour -> 2700
WORKED_EXAMPLE_RING = {
    'category_id': 'cat001',
    'primary_material': 'gold',
    'purity_tier': '21k',
    'gross_weight_grams': '10',
    'wastage_percentage': '10',
    'labor_charge': '500',
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
def seeded(db_session):
    """Categories, rate rows with today's prices, and sequence counters."""
    inventory_service.ensure_default_categories()
    settings_service.ensure_default_rates()
    document_service.ensure_sequences()
    settings_service.set_rates(DEFAULT_TEST_RATES)
    return db_session


@pytest.fixture(scope='function')
def make_product(seeded):
    """Factory: add an inventory piece (worked-example ring by default) and return its SKU."""
    def _make(**overrides):
        attrs = dict(WORKED_EXAMPLE_RING)
        attrs.update(overrides)
        return inventory_service.add_product(attrs).sku
    return _make


@pytest.fixture(scope='function')
def ring_sku(make_product):
    return make_product()
