"""
Pytest fixtures for stockledger tests.

Provides an in-memory application, a per-test table wipe, and the default
chart of accounts with its posting rules.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Account
from stockledger.services import seed_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LEDGER_POST_RETRY_ATTEMPTS': 3,
        'LEDGER_POST_RETRY_BACKOFF': 0,
        'LEDGER_POST_RETRY_MAX_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def seeded(db_session):
    """Default chart of accounts and posting rules, committed."""
    seed_service.seed_defaults()
    return db_session


@pytest.fixture
def account():
    """Fetch an account by code, fresh from the database."""
    def _get(code):
        db.session.expire_all()
        return db.session.query(Account).filter_by(code=code).one()
    return _get
