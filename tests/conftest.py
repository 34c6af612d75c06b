# tests/conftest.py
"""
Pytest configuration and shared fixtures for the commission service.

Run:
    pytest -v
"""
from contextlib import nullcontext
from decimal import Decimal

import pytest
from flask import has_app_context

from app import create_app
from auth import create_access_token
from config import TestingConfig
from extensions import db
from models import User, Transaction, Commission, ADMIN_ROLE, MEMBER_ROLE

ADMIN_SUB = "auth0|admin"


def _context(app):
    """Reuse the active app context (and its session) when there is one."""
    return nullcontext() if has_app_context() else app.app_context()


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================

@pytest.fixture
def app():
    """Fresh app with an empty in-memory database per test."""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session(app):
    """Database session inside an app context, for service-level tests."""
    with app.app_context():
        yield db.session
        db.session.rollback()


# =============================================================================
# DATA FIXTURES
# =============================================================================

@pytest.fixture
def make_user(app):
    """
    Create and commit a user. Works with or without an active app context.
    Returns the new user's id.
    """
    counter = {"n": 0}

    def _make(username=None, sponsor_id=None, roles=None, auth0_id=None, **fields):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        with _context(app):
            user = User(
                username=username,
                full_name=fields.pop("full_name", username.title()),
                auth0_id=auth0_id or f"auth0|{username}",
                roles=roles or [MEMBER_ROLE],
                sponsor_id=sponsor_id,
                **fields,
            )
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def make_commission(app):
    """Create a transaction + one commission row. Returns the commission id."""

    def _make(user_id, amount, status="pending", type="direct", level=0, created_at=None):
        with _context(app):
            transaction = Transaction(user_id=user_id, amount=Decimal(str(amount)) * 10, type="sale")
            db.session.add(transaction)
            db.session.flush()
            commission = Commission(
                user_id=user_id,
                transaction_id=transaction.id,
                amount=Decimal(str(amount)),
                percentage=Decimal("10"),
                type=type,
                level=level,
                status=status,
            )
            if created_at is not None:
                commission.created_at = created_at
            db.session.add(commission)
            db.session.commit()
            return commission.id

    return _make


@pytest.fixture
def chain(make_user):
    """
    seller -> sponsor1 -> sponsor2 -> sponsor3 (root).
    Returns a dict of ids.
    """
    sponsor3 = make_user("sponsor3")
    sponsor2 = make_user("sponsor2", sponsor_id=sponsor3)
    sponsor1 = make_user("sponsor1", sponsor_id=sponsor2)
    seller = make_user("seller", sponsor_id=sponsor1, direct_commission=10, level_commissions=[5, 3, 1])
    return {"seller": seller, "sponsor1": sponsor1, "sponsor2": sponsor2, "sponsor3": sponsor3}


@pytest.fixture
def admin_id(make_user):
    return make_user("admin", roles=[MEMBER_ROLE, ADMIN_ROLE], auth0_id=ADMIN_SUB)


# =============================================================================
# AUTH FIXTURES
# =============================================================================

@pytest.fixture
def auth_headers(app):
    """Build Authorization headers carrying an HS256 token for ``sub``."""

    def _headers(sub):
        with _context(app):
            token = create_access_token(sub)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(admin_id, auth_headers):
    return auth_headers(ADMIN_SUB)

